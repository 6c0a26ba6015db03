"""Deletion of stale temporary files and cache directories."""

import fnmatch
import logging
import os
import shutil
import time
from typing import List, Optional

from .capabilities import DatabaseCompactor
from .models import DoctorConfig, StepResult
from .reporter import Reporter

SECONDS_PER_DAY = 24 * 60 * 60


def remove_path(path: str) -> StepResult:
    """Remove a file, symlink or directory tree."""
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.unlink(path)
    except FileNotFoundError:
        return StepResult.ok(f"Already removed {path}")
    except OSError as e:
        return StepResult.advisory(f"Could not remove {path}: {e}")
    return StepResult.ok(f"Removed {path}")


def empty_directory(path: str) -> List[StepResult]:
    """Remove everything inside a directory, keeping the directory."""
    try:
        entries = sorted(os.listdir(path))
    except OSError as e:
        return [StepResult.advisory(f"Could not list {path}: {e}")]
    return [remove_path(os.path.join(path, entry)) for entry in entries]


def find_stale_files(root: str, max_age_days: float, now: Optional[float] = None) -> List[str]:
    """List regular, non-hidden files under root not accessed within max_age_days."""
    now = time.time() if now is None else now
    cutoff = now - max_age_days * SECONDS_PER_DAY
    stale = []

    for current, dirs, files in os.walk(root):
        for name in files:
            if name.startswith('.'):
                continue
            path = os.path.join(current, name)
            try:
                if os.path.islink(path) or not os.path.isfile(path):
                    continue
                if os.stat(path).st_atime < cutoff:
                    stale.append(path)
            except OSError:
                continue

    return stale


class CleanupStage:
    """Removes temp files, browser caches and the thumbnail cache."""

    def __init__(self, config: DoctorConfig, reporter: Reporter,
                 compactor: Optional[DatabaseCompactor] = None):
        self.config = config
        self.reporter = reporter
        self.compactor = compactor or DatabaseCompactor()
        self.logger = logging.getLogger(__name__)

    def run(self) -> None:
        self.reporter.section("Cleaning Temporary Files")
        self.clean_temp_files()
        self.clean_browser_caches()
        self.clean_thumbnails()

    def clean_temp_files(self) -> int:
        """Delete stale temp files. Returns how many were removed."""
        root = self.config.temp_root
        self.reporter.note(f"Cleaning {root} directory...", fg='yellow', mirror=False)

        removed = 0
        failures = []
        for path in find_stale_files(root, self.config.temp_max_age_days):
            result = remove_path(path)
            if result.succeeded:
                removed += 1
            else:
                self.logger.debug(result.message)
                failures.append(path)

        if failures:
            self.reporter.warning(f"Could not clean all files in {root} ({len(failures)} failed)")
        self.reporter.success(f"Cleaned old files in {root}")
        return removed

    def clean_browser_caches(self) -> None:
        self.reporter.note("Cleaning browser caches...", fg='yellow', mirror=False)
        self.clean_firefox()
        for cache_root in self.config.chromium_roots:
            self.clean_chromium(cache_root)

    def clean_firefox(self) -> None:
        root = self.config.firefox_root
        if not os.path.isdir(root):
            return

        databases = []
        cache_dirs = []
        for current, dirs, files in os.walk(root):
            databases.extend(os.path.join(current, name) for name in files if name.endswith('.sqlite'))
            matched = [name for name in dirs if fnmatch.fnmatchcase(name, 'cache*')]
            cache_dirs.extend(os.path.join(current, name) for name in matched)
            dirs[:] = [name for name in dirs if name not in matched]

        for database in databases:
            self._guard(self.compactor.compact(database))
        for cache_dir in cache_dirs:
            self._guard(remove_path(cache_dir))

        self.reporter.success("Cleaned Firefox cache")

    def clean_chromium(self, cache_root: str) -> None:
        if not os.path.isdir(cache_root):
            return

        for cache_name in ('Cache', 'Code Cache'):
            cache_dir = os.path.join(cache_root, 'Default', cache_name)
            if os.path.isdir(cache_dir):
                for result in empty_directory(cache_dir):
                    self._guard(result)

        self.reporter.success(f"Cleaned {os.path.basename(cache_root.rstrip(os.sep))} cache")

    def clean_thumbnails(self) -> None:
        self.reporter.note("Cleaning thumbnail cache...", fg='yellow', mirror=False)
        cache_dir = self.config.thumbnail_cache
        if not os.path.isdir(cache_dir):
            return

        results = empty_directory(cache_dir)
        for result in results:
            if not result.succeeded:
                self.logger.debug(result.message)
        if any(not result.succeeded for result in results):
            self.reporter.warning("Could not clean all thumbnails")
        self.reporter.success("Cleaned thumbnail cache")

    def _guard(self, result: StepResult) -> None:
        """Report a failed deletion and keep going; successes stay quiet."""
        if result.succeeded:
            self.logger.debug(result.message)
        else:
            self.reporter.apply(result)
