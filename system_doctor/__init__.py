"""
System Doctor - host cleanup and health check utility.

This package backs up critical configuration directories, removes stale
temporary and cache files, reports disk and resource usage, suggests
further cleanup commands and optionally emails the report.
"""

__version__ = "1.0.0"

from .core.doctor import SystemDoctor
from .core.reporter import Reporter
from .reporters.email_reporter import EmailReporter

__all__ = ["SystemDoctor", "Reporter", "EmailReporter"]
