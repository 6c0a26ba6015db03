import os
import sqlite3
import time
from pathlib import Path

from system_doctor.core import cleanup
from system_doctor.core.cleanup import CleanupStage, find_stale_files
from system_doctor.core.models import StepResult

DAY = 24 * 60 * 60


def touch(path, age_days=0.0, content="x"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    stamp = time.time() - age_days * DAY
    os.utime(path, (stamp, stamp))
    return path


def test_find_stale_files_skips_hidden_and_recent(tmp_path):
    root = tmp_path / "tmp"
    old = touch(root / "old.txt", age_days=3)
    nested = touch(root / "session" / "old.dat", age_days=5)
    touch(root / "fresh.txt", age_days=0)
    touch(root / ".X0-lock", age_days=10)

    assert sorted(find_stale_files(str(root), 1)) == sorted([str(old), str(nested)])


def test_temp_cleanup_removes_only_stale_visible_files(make_config, reporter, log_text):
    config = make_config()
    root = config.temp_root
    old = touch(Path(root) / "old.txt", age_days=3)
    fresh = touch(Path(root) / "fresh.txt", age_days=0.1)
    hidden = touch(Path(root) / ".hidden-old", age_days=3)

    removed = CleanupStage(config, reporter).clean_temp_files()

    assert removed == 1
    assert not old.exists()
    assert fresh.exists()
    assert hidden.exists()
    assert f"SUCCESS: Cleaned old files in {root}" in log_text()


def test_temp_cleanup_failure_is_a_warning(make_config, reporter, log_text, monkeypatch):
    config = make_config()
    touch(Path(config.temp_root) / "stuck.txt", age_days=3)
    monkeypatch.setattr(cleanup, 'remove_path', lambda path: StepResult.advisory(f"Could not remove {path}"))

    CleanupStage(config, reporter).clean_temp_files()

    text = log_text()
    assert f"WARNING: Could not clean all files in {config.temp_root} (1 failed)" in text
    assert f"SUCCESS: Cleaned old files in {config.temp_root}" in text


def test_firefox_databases_compacted_and_cache_dirs_removed(home, config, reporter, log_text):
    profile = home / ".mozilla" / "firefox" / "abc.default"
    profile.mkdir(parents=True)
    database = profile / "places.sqlite"
    connection = sqlite3.connect(str(database))
    connection.execute("CREATE TABLE visits (url TEXT)")
    connection.execute("INSERT INTO visits VALUES ('https://example.org')")
    connection.commit()
    connection.close()
    (profile / "cache2" / "entries").mkdir(parents=True)
    (profile / "cache2" / "entries" / "A1B2").write_text("cached")
    (profile / "startupCache").mkdir()

    CleanupStage(config, reporter).clean_firefox()

    assert not (profile / "cache2").exists()
    assert (profile / "startupCache").exists()
    connection = sqlite3.connect(str(database))
    assert connection.execute("SELECT url FROM visits").fetchall() == [('https://example.org',)]
    connection.close()
    assert "SUCCESS: Cleaned Firefox cache" in log_text()


def test_broken_firefox_database_is_a_warning(home, config, reporter, log_text):
    profile = home / ".mozilla" / "firefox" / "abc.default"
    profile.mkdir(parents=True)
    (profile / "broken.sqlite").write_bytes(b"this is not a database" * 100)
    (profile / "cache2").mkdir()

    CleanupStage(config, reporter).clean_firefox()

    text = log_text()
    assert "WARNING: Could not compact" in text
    assert not (profile / "cache2").exists()
    assert "SUCCESS: Cleaned Firefox cache" in text


def test_chromium_caches_emptied(home, config, reporter, log_text):
    default = home / ".cache" / "chromium" / "Default"
    touch(default / "Cache" / "data_0")
    touch(default / "Code Cache" / "js" / "index")
    touch(default / "Preferences")

    CleanupStage(config, reporter).clean_browser_caches()

    assert os.listdir(default / "Cache") == []
    assert os.listdir(default / "Code Cache") == []
    assert (default / "Preferences").exists()
    text = log_text()
    assert "SUCCESS: Cleaned chromium cache" in text
    assert "google-chrome" not in text


def test_thumbnail_cache_emptied(home, config, reporter, log_text):
    thumbnails = home / ".cache" / "thumbnails"
    touch(thumbnails / "normal" / "a.png")
    touch(thumbnails / "large" / "b.png")

    CleanupStage(config, reporter).clean_thumbnails()

    assert thumbnails.exists()
    assert os.listdir(thumbnails) == []
    assert "SUCCESS: Cleaned thumbnail cache" in log_text()


def test_missing_locations_are_skipped_silently(config, reporter, log_text):
    CleanupStage(config, reporter).run()

    text = log_text()
    assert "WARNING" not in text
    assert "Firefox" not in text
    assert "thumbnail" not in text
