"""Disk usage analysis: partitions, large directories, large files, old logs."""

import fnmatch
import heapq
import logging
import os
from typing import List, Optional

from .capabilities import DiskUsageProbe
from .models import DoctorConfig, PartitionUsage, SizeEntry
from .reporter import Reporter
from ..utils.formatters import format_file_size

ROTATED_LOG_PATTERNS = ['*.log.*', '*.gz', '*.old']

logger = logging.getLogger(__name__)


def tree_size(path: str) -> int:
    """Total size in bytes of a file or directory tree, without following symlinks.

    Unreadable entries are skipped.
    """
    try:
        if not os.path.isdir(path) or os.path.islink(path):
            return os.lstat(path).st_size
    except OSError:
        return 0

    total = 0
    for root, dirs, files in os.walk(path):
        for name in files:
            try:
                total += os.lstat(os.path.join(root, name)).st_size
            except OSError as e:
                logger.debug(f"Skipping {name}: {e}")
    return total


def largest_entries(base_path: str, limit: int = 10) -> List[SizeEntry]:
    """Largest non-hidden top-level entries of base_path by recursive size."""
    entries = []
    try:
        with os.scandir(base_path) as it:
            for entry in it:
                if entry.name.startswith('.'):
                    continue
                entries.append(SizeEntry(path=entry.path, size=tree_size(entry.path)))
    except OSError as e:
        logger.debug(f"Could not list {base_path}: {e}")
        return []

    entries.sort(key=lambda e: e.size, reverse=True)
    return entries[:limit]


def largest_files(base_path: str, min_size: int, limit: int = 10) -> List[SizeEntry]:
    """Largest regular files under base_path strictly bigger than min_size bytes."""
    found = []
    for root, dirs, files in os.walk(base_path):
        for name in files:
            path = os.path.join(root, name)
            try:
                if os.path.islink(path) or not os.path.isfile(path):
                    continue
                size = os.stat(path).st_size
            except OSError:
                continue
            if size > min_size:
                found.append(SizeEntry(path=path, size=size))

    return heapq.nlargest(limit, found, key=lambda e: e.size)


def find_rotated_logs(log_root: str, limit: int = 10) -> List[str]:
    """Up to `limit` rotated, compressed or old log files under log_root."""
    logs = []
    for root, dirs, files in os.walk(log_root):
        dirs.sort()
        for name in sorted(files):
            if not any(fnmatch.fnmatch(name, pattern) for pattern in ROTATED_LOG_PATTERNS):
                continue
            path = os.path.join(root, name)
            if os.path.isfile(path) and not os.path.islink(path):
                logs.append(path)
                if len(logs) >= limit:
                    return logs
    return logs


def find_low_space(partitions: List[PartitionUsage], threshold: float) -> List[PartitionUsage]:
    """Partitions whose utilization strictly exceeds threshold percent."""
    return [p for p in partitions if p.use_percent > threshold]


def format_size_entries(entries: List[SizeEntry]) -> str:
    return "\n".join(f"{format_file_size(e.size)}\t{e.path}" for e in entries)


class DiskAnalyzer:
    """Reports filesystem utilization and where the space went. Deletes nothing."""

    def __init__(self, config: DoctorConfig, reporter: Reporter, probe: DiskUsageProbe):
        self.config = config
        self.reporter = reporter
        self.probe = probe

    def run(self) -> Optional[List[PartitionUsage]]:
        self.reporter.section("Analyzing Disk Usage")

        partitions = self.report_filesystems()
        self.report_largest_directories()
        self.report_largest_files()
        self.report_rotated_logs()
        return partitions

    def report_filesystems(self) -> Optional[List[PartitionUsage]]:
        usage = self.probe.partitions()
        if usage is None:
            self.reporter.warning("Could not read filesystem usage (df unavailable)")
            return None

        header, partitions = usage
        rows = [header] + [p.raw for p in partitions]
        self.reporter.block("Filesystem Usage:", "\n".join(rows))
        self.reporter.info(f"Filesystem usage: {' '.join(rows)}")

        low_space = find_low_space(partitions, self.config.disk_threshold)
        if low_space:
            self.reporter.warning("Low disk space detected on one or more partitions!")
            self.reporter.block("Partitions low on space:", "\n".join([header] + [p.raw for p in low_space]))

        return partitions

    def report_largest_directories(self) -> List[SizeEntry]:
        home = self.config.home
        entries = largest_entries(home, self.config.top_entries)
        self.reporter.block(f"Largest directories in {home}:", format_size_entries(entries))
        return entries

    def report_largest_files(self) -> List[SizeEntry]:
        min_size = self.config.large_file_mb * 1024 * 1024
        files = largest_files(self.config.home, min_size, self.config.top_entries)
        self.reporter.block(f"Largest files (>{self.config.large_file_mb}MB):", format_size_entries(files))
        return files

    def report_rotated_logs(self) -> List[str]:
        logs = find_rotated_logs(self.config.system_log_root, self.config.top_entries)
        self.reporter.block("Old log files that might be cleared:", "\n".join(logs))
        return logs
