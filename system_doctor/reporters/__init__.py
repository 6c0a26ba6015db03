"""Report delivery for system doctor."""

from .email_reporter import EmailReporter

__all__ = ["EmailReporter"]
