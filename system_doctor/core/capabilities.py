"""External tool adapters used by the pipeline stages.

Stages never build command lines themselves. They ask the registry whether a
tool is present and call a narrow operation on an adapter, which returns a
typed value or a StepResult.
"""

import logging
import os
import re
import shutil
import sqlite3
import subprocess
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .models import MemoryUsage, PartitionUsage, ProcessInfo, StepResult

VIRTUAL_FILESYSTEMS = ('tmpfs', 'devtmpfs', 'udev')


class ToolUnavailableError(RuntimeError):
    """Raised when a command is run that the host does not provide."""


class CommandRunner:
    """Runs external commands and captures their output."""

    def run(self, args: Sequence[str], input_text: Optional[str] = None) -> subprocess.CompletedProcess:
        return subprocess.run(
            list(args),
            input=input_text,
            capture_output=True,
            text=True,
            errors='replace',
            check=False,
        )


class CapabilityRegistry:
    """Answers which external tools exist and runs them."""

    def __init__(self, which: Callable[[str], Optional[str]] = shutil.which,
                 runner: Optional[CommandRunner] = None):
        self._which = which
        self._available: Dict[str, bool] = {}
        self.runner = runner or CommandRunner()
        self.logger = logging.getLogger(__name__)

    def available(self, tool: str) -> bool:
        if tool not in self._available:
            self._available[tool] = self._which(tool) is not None
            self.logger.debug(f"Capability probe {tool}: {self._available[tool]}")
        return self._available[tool]

    def run(self, tool: str, *args: str, input_text: Optional[str] = None) -> subprocess.CompletedProcess:
        """Run a tool.

        Raises:
            ToolUnavailableError: If the tool is not installed.
        """
        if not self.available(tool):
            raise ToolUnavailableError(f"{tool} is not available on this host")
        return self.runner.run([tool, *args], input_text=input_text)

    def output(self, tool: str, *args: str) -> Optional[str]:
        """Return a tool's stdout, or None if it is missing or fails."""
        try:
            result = self.run(tool, *args)
        except (ToolUnavailableError, OSError, subprocess.SubprocessError) as e:
            self.logger.debug(f"{tool} {' '.join(args)} failed: {e}")
            return None

        if result.returncode != 0:
            self.logger.debug(f"{tool} {' '.join(args)} exited with {result.returncode}: {result.stderr.strip()}")
            return None
        return result.stdout


class FileCopier:
    """Recursive attribute-preserving copy, via rsync when installed."""

    def __init__(self, registry: CapabilityRegistry):
        self.registry = registry
        self.logger = logging.getLogger(__name__)

    @property
    def uses_rsync(self) -> bool:
        return self.registry.available('rsync')

    def copy_tree(self, source: str, destination: str, excludes: Sequence[str] = ()) -> StepResult:
        """Copy the contents of source into destination, merging if it exists."""
        if self.uses_rsync:
            return self._copy_with_rsync(source, destination, excludes)
        return self._copy_with_shutil(source, destination, excludes)

    def _copy_with_rsync(self, source: str, destination: str, excludes: Sequence[str]) -> StepResult:
        args = ['-a']
        args.extend(f'--exclude={pattern}' for pattern in excludes)
        args.extend([source.rstrip(os.sep) + os.sep, destination.rstrip(os.sep) + os.sep])

        try:
            result = self.registry.run('rsync', *args)
        except (OSError, subprocess.SubprocessError) as e:
            return StepResult.advisory(f"Could not fully backup {source}: {e}")

        if result.returncode != 0:
            self.logger.debug(f"rsync exited with {result.returncode}: {result.stderr.strip()}")
            return StepResult.advisory(f"Could not fully backup {source}")
        return StepResult.ok(f"Backed up {source}")

    def _copy_with_shutil(self, source: str, destination: str, excludes: Sequence[str]) -> StepResult:
        try:
            shutil.copytree(
                source,
                destination,
                symlinks=True,
                ignore=shutil.ignore_patterns(*excludes) if excludes else None,
                copy_function=shutil.copy2,
                dirs_exist_ok=True,
            )
        except shutil.Error as e:
            self.logger.debug(f"Partial copy of {source}: {len(e.args[0])} entries failed")
            return StepResult.advisory(f"Could not fully backup {source}")
        except OSError as e:
            self.logger.debug(f"Copy of {source} failed: {e}")
            return StepResult.advisory(f"Could not fully backup {source}")
        return StepResult.ok(f"Backed up {source}")


class DatabaseCompactor:
    """Compacts SQLite database files in place."""

    def compact(self, path: str) -> StepResult:
        try:
            connection = sqlite3.connect(path)
            try:
                connection.execute('VACUUM')
            finally:
                connection.close()
        except sqlite3.Error as e:
            return StepResult.advisory(f"Could not compact {path}: {e}")
        return StepResult.ok(f"Compacted {path}")


def parse_df_output(text: str) -> List[PartitionUsage]:
    """Parse POSIX `df -P` output into partition rows."""
    partitions = []
    for line in text.splitlines()[1:]:
        fields = line.split(None, 5)
        if len(fields) < 6:
            continue
        try:
            use_percent = int(fields[4].rstrip('%'))
        except ValueError:
            continue
        partitions.append(PartitionUsage(
            filesystem=fields[0],
            size=fields[1],
            used=fields[2],
            available=fields[3],
            use_percent=use_percent,
            mount_point=fields[5],
            raw=line,
        ))
    return partitions


def is_virtual_filesystem(partition: PartitionUsage) -> bool:
    return any(name in partition.filesystem for name in VIRTUAL_FILESYSTEMS)


class DiskUsageProbe:
    """Filesystem utilization via df."""

    def __init__(self, registry: CapabilityRegistry):
        self.registry = registry

    @property
    def available(self) -> bool:
        return self.registry.available('df')

    def partitions(self) -> Optional[Tuple[str, List[PartitionUsage]]]:
        """Return df's header line and the non-virtual partitions.

        Returns:
            (header, partitions), or None if df cannot be run.
        """
        output = self.registry.output('df', '-hP')
        if output is None:
            return None
        lines = output.splitlines()
        header = lines[0] if lines else ""
        return header, [p for p in parse_df_output(output) if not is_virtual_filesystem(p)]


def parse_free_output(text: str) -> Optional[Tuple[int, int]]:
    """Return (total, used) from the Mem: line of `free` output."""
    for line in text.splitlines():
        if line.startswith('Mem:'):
            fields = line.split()
            try:
                return int(fields[1]), int(fields[2])
            except (IndexError, ValueError):
                return None
    return None


def parse_vm_stat_free_pages(text: str) -> Optional[int]:
    match = re.search(r'^Pages free:\s+(\d+)\.?', text, re.MULTILINE)
    return int(match.group(1)) if match else None


def parse_vm_stat_page_size(text: str) -> Optional[int]:
    match = re.search(r'page size of (\d+) bytes', text)
    return int(match.group(1)) if match else None


class MemoryProbe:
    """Memory utilization via free, or vm_stat and sysctl on macOS."""

    def __init__(self, registry: CapabilityRegistry):
        self.registry = registry
        self.logger = logging.getLogger(__name__)

    @property
    def available(self) -> bool:
        return self.registry.available('free') or self.registry.available('vm_stat')

    def usage(self) -> Optional[MemoryUsage]:
        if self.registry.available('free'):
            return self._usage_from_free()
        if self.registry.available('vm_stat'):
            return self._usage_from_vm_stat()
        return None

    def _usage_from_free(self) -> Optional[MemoryUsage]:
        raw = self.registry.output('free', '-b')
        parsed = parse_free_output(raw) if raw else None
        if parsed is None:
            return None

        total, used = parsed
        detail = self.registry.output('free', '-h') or raw
        return MemoryUsage(total_bytes=total, used_bytes=used, detail=detail.rstrip())

    def _usage_from_vm_stat(self) -> Optional[MemoryUsage]:
        vm_stat = self.registry.output('vm_stat')
        memsize = self.registry.output('sysctl', '-n', 'hw.memsize')
        if not vm_stat or not memsize:
            return None

        free_pages = parse_vm_stat_free_pages(vm_stat)
        page_size = parse_vm_stat_page_size(vm_stat)
        if page_size is None:
            page_size_text = self.registry.output('sysctl', '-n', 'hw.pagesize')
            page_size = int(page_size_text.strip()) if page_size_text and page_size_text.strip().isdigit() else None
        if free_pages is None or page_size is None:
            return None

        try:
            total = int(memsize.strip())
        except ValueError:
            return None

        free = free_pages * page_size
        detail = f"Total Memory: {total // (1024 * 1024)} MB\nFree Memory: {free // (1024 * 1024)} MB"
        return MemoryUsage(total_bytes=total, used_bytes=max(total - free, 0), detail=detail)


def parse_ps_output(text: str) -> List[ProcessInfo]:
    processes = []
    for line in text.splitlines():
        fields = line.split(None, 2)
        if len(fields) < 3:
            continue
        try:
            processes.append(ProcessInfo(pid=int(fields[0]), cpu_percent=float(fields[1].replace(',', '.')),
                                         command=fields[2].strip()))
        except ValueError:
            continue
    return processes


class ProcessProbe:
    """Top CPU consumers via ps."""

    def __init__(self, registry: CapabilityRegistry):
        self.registry = registry

    @property
    def available(self) -> bool:
        return self.registry.available('ps')

    def top(self, limit: int = 5) -> Optional[List[ProcessInfo]]:
        output = self.registry.output('ps', '-A', '-o', 'pid=', '-o', '%cpu=', '-o', 'comm=')
        if output is None:
            return None
        processes = parse_ps_output(output)
        processes.sort(key=lambda p: p.cpu_percent, reverse=True)
        return processes[:limit]


def parse_load_average(text: str) -> Optional[float]:
    """Return the first load-average figure from `uptime` output."""
    match = re.search(r'load averages?:\s*(\d+(?:[.,]\d+)?)', text)
    if not match:
        return None
    return float(match.group(1).replace(',', '.'))


class UptimeProbe:
    """Uptime text and the one-minute load figure."""

    def __init__(self, registry: CapabilityRegistry):
        self.registry = registry

    @property
    def available(self) -> bool:
        return self.registry.available('uptime')

    def uptime(self) -> Optional[str]:
        output = self.registry.output('uptime')
        return output.strip() if output else None

    def load_figure(self) -> Optional[float]:
        text = self.uptime()
        if text:
            load = parse_load_average(text)
            if load is not None:
                return load

        try:
            return os.getloadavg()[0]
        except (AttributeError, OSError):
            return None


class CacheSizeProbe:
    """Human-readable size of a directory via du, best effort."""

    def __init__(self, registry: CapabilityRegistry):
        self.registry = registry

    def size(self, path: str) -> str:
        output = self.registry.output('du', '-sh', path)
        fields = output.split() if output else []
        return fields[0] if fields else ""


def parse_journal_usage(text: str) -> str:
    match = re.search(r'take up ([\d.,]+\s*[KMGTPE]?i?B?)', text)
    return match.group(1).replace(' ', '') if match else ""


class JournalProbe:
    """Systemd journal disk usage."""

    def __init__(self, registry: CapabilityRegistry):
        self.registry = registry

    @property
    def available(self) -> bool:
        return self.registry.available('journalctl')

    def disk_usage(self) -> str:
        output = self.registry.output('journalctl', '--disk-usage')
        return parse_journal_usage(output) if output else ""
