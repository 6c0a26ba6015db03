"""Interactive notification opt-in."""

import dataclasses
import logging
from datetime import datetime
from typing import Callable

import click

from .models import DoctorConfig
from .reporter import Reporter
from ..reporters.email_reporter import EmailReporter
from ..utils.formatters import format_date


def _ask_address() -> str:
    return click.prompt("Enter email address to send reports to", default="", show_default=False)


class NotificationConfigurator:
    """Asks whether to email the report and prepares the report buffer."""

    def __init__(self, reporter: Reporter, mailer: EmailReporter,
                 confirm: Callable[[str], bool] = click.confirm,
                 ask_address: Callable[[], str] = _ask_address):
        self.reporter = reporter
        self.mailer = mailer
        self.confirm = confirm
        self.ask_address = ask_address
        self.logger = logging.getLogger(__name__)

    def configure(self, config: DoctorConfig) -> DoctorConfig:
        """Return config with notifications enabled, or config unchanged.

        Notifications stay disabled when no transport is installed, when the
        user declines, when the address is empty, or when the report buffer
        cannot be created.
        """
        self.reporter.section("Notification Setup")

        if not self.mailer.is_available():
            self.reporter.warning("Mail transport not found. Email notifications will not be sent.")
            self.reporter.warning("Install msmtp, sendmail or mailutils to enable email notifications.")
            return config

        if not self.confirm("Do you want to receive email notifications?"):
            return config

        recipient = (self.ask_address() or "").strip()
        if not recipient:
            self.reporter.warning("No email address provided. Email notifications will not be sent.")
            return config

        header = [
            f"System Doctor Report - {config.hostname}",
            f"Generated on: {format_date(datetime.now())}",
            "=======================================",
        ]
        if not self.reporter.open_report(config.report_path, header):
            self.reporter.warning(f"Could not create report file {config.report_path}. "
                                  f"Email notifications will not be sent.")
            return config

        self.reporter.success(f"Email notifications will be sent to: {recipient}")
        return dataclasses.replace(config, notify=True, recipient=recipient)
