"""Data models for system doctor runs."""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Tuple


class StepOutcome(Enum):
    """How a single fallible operation ended."""
    SUCCESS = "success"
    ADVISORY = "advisory"
    FATAL = "fatal"


@dataclass(frozen=True)
class StepResult:
    """Result of one guarded operation (a copy, a deletion, a probe)."""
    outcome: StepOutcome
    message: str

    @classmethod
    def ok(cls, message: str) -> "StepResult":
        return cls(StepOutcome.SUCCESS, message)

    @classmethod
    def advisory(cls, message: str) -> "StepResult":
        return cls(StepOutcome.ADVISORY, message)

    @classmethod
    def fatal(cls, message: str) -> "StepResult":
        return cls(StepOutcome.FATAL, message)

    @property
    def succeeded(self) -> bool:
        return self.outcome is StepOutcome.SUCCESS


class DoctorError(Exception):
    """Raised when an unguarded operation fails and the run must stop."""


@dataclass(frozen=True)
class DoctorConfig:
    """Process-lifetime settings, built once and read by every stage."""
    home: str
    hostname: str
    run_date: date
    log_path: str
    backup_root: str
    report_path: str
    critical_dirs: Tuple[str, ...]
    backup_excludes: Tuple[str, ...]
    temp_root: str
    temp_max_age_days: int
    firefox_root: str
    chromium_roots: Tuple[str, ...]
    thumbnail_cache: str
    system_log_root: str = "/var/log"
    disk_threshold: float = 90
    memory_threshold: float = 80
    cpu_threshold: float = 80
    top_entries: int = 10
    large_file_mb: int = 100
    top_processes: int = 5
    notify: bool = False
    recipient: Optional[str] = None
    mail_transport: str = "auto"
    smtp_server: str = "localhost"
    smtp_port: int = 25
    from_address: Optional[str] = None

    @property
    def email_subject(self) -> str:
        return f"System Doctor Report - {self.hostname} - {self.run_date.strftime('%Y-%m-%d')}"


@dataclass
class PartitionUsage:
    """One row of filesystem utilization."""
    filesystem: str
    size: str
    used: str
    available: str
    use_percent: int
    mount_point: str
    raw: str


@dataclass
class SizeEntry:
    """A path with its size in bytes."""
    path: str
    size: int


@dataclass
class ProcessInfo:
    """A running process and its CPU share."""
    pid: int
    command: str
    cpu_percent: float


@dataclass
class MemoryUsage:
    """Memory utilization as reported by the host."""
    total_bytes: int
    used_bytes: int
    detail: str

    @property
    def percent(self) -> int:
        if self.total_bytes <= 0:
            return 0
        return int(self.used_bytes * 100 / self.total_bytes)
