"""Audit log and report buffer writer for system doctor runs."""

import logging
import os
from typing import Iterable, Optional

import click

from .models import DoctorError, StepOutcome, StepResult

SECTION = 21
SUCCESS = 25
logging.addLevelName(SECTION, "SECTION")
logging.addLevelName(SUCCESS, "SUCCESS")

LOG_FORMAT = "%(asctime)s - %(levelname)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def printable(text: str) -> str:
    """Backslash-escape characters that cannot be encoded as UTF-8.

    File names and tool output that are not valid UTF-8 arrive as lone
    surrogates; they are written as `\\udcff` rather than failing the write.
    """
    return text.encode("utf-8", "backslashreplace").decode("utf-8")


class AuditFileHandler(logging.FileHandler):
    """File handler that lets write failures reach the caller.

    The audit log is the record of what the run did, so a failed write
    stops the run instead of being printed and ignored.
    """

    def handleError(self, record):
        raise


class Reporter:
    """Writes timestamped events to the audit log and the report buffer."""

    def __init__(self, log_path: str, echo: bool = True):
        """Open the audit log for appending.

        Args:
            log_path: Path of the per-day log file. Created if absent.
            echo: Whether to print events to the terminal as well.

        Raises:
            OSError: If the log file cannot be created or opened.
        """
        self.log_path = log_path
        self.echo = echo
        self.report_path: Optional[str] = None
        self.logger = logging.getLogger(__name__)

        self._audit = logging.getLogger(f"system_doctor.audit.{os.path.abspath(log_path)}")
        self._audit.setLevel(logging.DEBUG)
        self._audit.propagate = False
        for handler in self._audit.handlers[:]:
            handler.close()
            self._audit.removeHandler(handler)

        self._handler = AuditFileHandler(log_path, mode='a', encoding='utf-8')
        self._handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
        self._audit.addHandler(self._handler)

    @property
    def report_active(self) -> bool:
        return self.report_path is not None

    def record(self, level: int, message: str, mirror: bool = True) -> None:
        """Append one event to the log and, when active, to the report buffer."""
        message = printable(message)
        self._audit.log(level, message)
        if mirror:
            self.mirror(f"{logging.getLevelName(level)}: {message}")

    def info(self, message: str) -> None:
        self._echo(message)
        self.record(logging.INFO, message, mirror=False)

    def section(self, title: str) -> None:
        self._echo(f"\n==== {title} ====", fg='cyan')
        self.record(SECTION, title, mirror=False)
        self.mirror(f"\n==== {title} ====")

    def success(self, message: str) -> None:
        self._echo(f"✓ {message}", fg='green')
        self.record(SUCCESS, message)

    def warning(self, message: str) -> None:
        self._echo(f"⚠ {message}", fg='yellow')
        self.record(logging.WARNING, message)

    def error(self, message: str) -> None:
        self._echo(f"✗ {message}", fg='red')
        self.record(logging.ERROR, message)

    def note(self, message: str, fg: Optional[str] = None, mirror: bool = True) -> None:
        """Print a line, optionally mirroring it into the report, without logging it."""
        self._echo(message, fg=fg)
        if mirror:
            self.mirror(message)

    def block(self, title: str, body: str) -> None:
        """Print a titled multi-line block and mirror it into the report."""
        self._echo(f"\n{title}", fg='yellow')
        if body:
            self._echo(body)
        self.mirror(f"\n{title}")
        if body:
            self.mirror(body)

    def apply(self, result: StepResult) -> StepResult:
        """Log a step result and continue, or stop on a fatal one.

        Raises:
            DoctorError: If the result is fatal.
        """
        if result.outcome is StepOutcome.SUCCESS:
            self.success(result.message)
        elif result.outcome is StepOutcome.ADVISORY:
            self.warning(result.message)
        else:
            self.error(result.message)
            raise DoctorError(result.message)
        return result

    def open_report(self, path: str, header_lines: Iterable[str]) -> bool:
        """Start mirroring into a fresh report buffer.

        Returns:
            True if the buffer was created.
        """
        try:
            with open(path, 'w', encoding='utf-8') as f:
                for line in header_lines:
                    f.write(f"{printable(line)}\n")
        except OSError as e:
            self.logger.debug(f"Could not create report buffer {path}: {e}")
            return False

        self.report_path = path
        return True

    def mirror(self, text: str) -> None:
        """Append text to the report buffer. Write failures are ignored."""
        if self.report_path is None:
            return

        try:
            with open(self.report_path, 'a', encoding='utf-8') as f:
                f.write(f"{printable(text)}\n")
        except OSError as e:
            self.logger.debug(f"Could not write to report buffer {self.report_path}: {e}")

    def read_report(self) -> str:
        if self.report_path is None:
            return ""

        try:
            with open(self.report_path, 'r', encoding='utf-8') as f:
                return f.read()
        except OSError as e:
            self.logger.debug(f"Could not read report buffer {self.report_path}: {e}")
            return ""

    def discard_report(self) -> None:
        """Delete the report buffer and stop mirroring."""
        if self.report_path is None:
            return

        try:
            os.unlink(self.report_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Could not delete report buffer {self.report_path}: {e}")
        finally:
            self.report_path = None

    def _echo(self, text: str, fg: Optional[str] = None) -> None:
        if self.echo:
            click.secho(printable(text), fg=fg)

    def close(self) -> None:
        self._audit.removeHandler(self._handler)
        self._handler.close()
