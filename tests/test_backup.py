import os

import pytest

from system_doctor.core.backup import BackupStage, flatten_backup_name
from system_doctor.core.capabilities import FileCopier
from system_doctor.core.models import DoctorError, StepResult


def make_tree(root):
    (root / "sub").mkdir(parents=True)
    (root / "hosts").write_text("127.0.0.1 localhost\n")
    (root / "sub" / "app.conf").write_text("key=value\n")
    (root / ".cache-data").mkdir()
    (root / ".cache-data" / "blob").write_text("x")
    (root / ".mycache").write_text("x")
    return root


def test_flatten_backup_name():
    assert flatten_backup_name("/etc") == "etc"
    assert flatten_backup_name("/etc/") == "etc"
    assert flatten_backup_name("/home/ann/.ssh") == "home-ann-.ssh"
    assert flatten_backup_name("/home/ann/.config") == "home-ann-.config"


def test_existing_directory_is_copied_without_cache_entries(tmp_path, make_config, make_registry, reporter, log_text):
    source = make_tree(tmp_path / "etc")
    config = make_config(critical_dirs=(str(source),))
    registry, _ = make_registry()

    written = BackupStage(config, reporter, FileCopier(registry)).run()

    destination = os.path.join(config.backup_root, flatten_backup_name(str(source)))
    assert written == [destination]
    assert sorted(os.listdir(destination)) == ["hosts", "sub"]
    with open(os.path.join(destination, "sub", "app.conf")) as f:
        assert f.read() == "key=value\n"

    text = log_text()
    assert f"SUCCESS: Created backup directory at {config.backup_root}" in text
    assert f"SUCCESS: Backed up {source}" in text
    assert f"SUCCESS: Backup completed at {config.backup_root}" in text


def test_copy_preserves_modification_time(tmp_path, make_config, make_registry, reporter):
    source = make_tree(tmp_path / "etc")
    os.utime(source / "hosts", (1_000_000_000, 1_000_000_000))
    config = make_config(critical_dirs=(str(source),))
    registry, _ = make_registry()

    BackupStage(config, reporter, FileCopier(registry)).run()

    copied = os.path.join(config.backup_root, flatten_backup_name(str(source)), "hosts")
    assert int(os.stat(copied).st_mtime) == 1_000_000_000


def test_missing_directory_is_skipped_with_warning(tmp_path, make_config, make_registry, reporter, log_text):
    missing = tmp_path / "does-not-exist"
    config = make_config(critical_dirs=(str(missing),))
    registry, _ = make_registry()

    written = BackupStage(config, reporter, FileCopier(registry)).run()

    assert written == []
    assert os.listdir(config.backup_root) == []
    assert f"WARNING: Directory {missing} does not exist, skipping backup" in log_text()


def test_rerun_merges_into_existing_backup(tmp_path, make_config, make_registry, reporter, log_text):
    source = make_tree(tmp_path / "etc")
    config = make_config(critical_dirs=(str(source),))
    registry, _ = make_registry()
    stage = BackupStage(config, reporter, FileCopier(registry))

    stage.run()
    (source / "new.conf").write_text("added later\n")
    stage.run()

    destination = os.path.join(config.backup_root, flatten_backup_name(str(source)))
    assert "new.conf" in os.listdir(destination)
    assert log_text().count("Created backup directory") == 1


class FlakyCopier:
    def __init__(self, failing):
        self.failing = failing
        self.copied = []

    def copy_tree(self, source, destination, excludes=()):
        self.copied.append(source)
        if source in self.failing:
            return StepResult.advisory(f"Could not fully backup {source}")
        os.makedirs(destination, exist_ok=True)
        return StepResult.ok(f"Backed up {source}")


def test_partial_copy_failure_does_not_stop_remaining_paths(tmp_path, make_config, reporter, log_text):
    first = make_tree(tmp_path / "first")
    second = make_tree(tmp_path / "second")
    config = make_config(critical_dirs=(str(first), str(second)))
    copier = FlakyCopier(failing={str(first)})

    written = BackupStage(config, reporter, copier).run()

    assert copier.copied == [str(first), str(second)]
    assert len(written) == 2
    text = log_text()
    assert f"WARNING: Could not fully backup {first}" in text
    assert f"SUCCESS: Backed up {second}" in text


def test_rsync_is_used_when_installed(tmp_path, make_config, make_registry, reporter, log_text):
    source = make_tree(tmp_path / "etc")
    config = make_config(critical_dirs=(str(source),))
    destination = os.path.join(config.backup_root, flatten_backup_name(str(source)))
    expected = ('rsync', '-a', '--exclude=.*cache*', f"{source}/", f"{destination}/")
    registry, runner = make_registry(tools=['rsync'], responses={expected: ("", 23)})

    BackupStage(config, reporter, FileCopier(registry)).run()

    assert runner.calls == [(list(expected), None)]
    assert f"WARNING: Could not fully backup {source}" in log_text()


def test_unusable_backup_root_stops_the_run(tmp_path, make_config, make_registry, reporter, log_text):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    config = make_config(backup_root=str(blocker / "backup"))
    registry, _ = make_registry()

    with pytest.raises(DoctorError):
        BackupStage(config, reporter, FileCopier(registry)).run()

    assert f"ERROR: Could not create backup directory {config.backup_root}" in log_text()
