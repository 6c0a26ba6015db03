"""Main system doctor coordinator."""

import logging
import os
from datetime import datetime
from typing import Callable, Optional

import click

from .backup import BackupStage
from .capabilities import (CapabilityRegistry, DatabaseCompactor, DiskUsageProbe, FileCopier,
                           MemoryProbe, ProcessProbe, UptimeProbe)
from .cleanup import CleanupStage
from .disk_analyzer import DiskAnalyzer
from .models import DoctorConfig
from .reporter import Reporter
from .resource_analyzer import ResourceAnalyzer
from .suggestions import SuggestionEngine
from ..reporters.email_reporter import EmailReporter
from ..utils.formatters import format_date


def check_privileges(reporter: Reporter, geteuid: Callable[[], int] = os.geteuid) -> bool:
    """Warn when not running as root. Never blocks the run.

    Returns:
        True if running as root.
    """
    if geteuid() != 0:
        reporter.warning("Not running as root. Some cleaning operations may fail.")
        reporter.info("Script running without root privileges")
        return False

    reporter.success("Running with root privileges")
    return True


class SystemDoctor:
    """Runs backup, cleanup, analysis, suggestions and the mailer in order."""

    def __init__(self, config: DoctorConfig, reporter: Reporter,
                 registry: Optional[CapabilityRegistry] = None,
                 mailer: Optional[EmailReporter] = None):
        """Initialize the doctor.

        Args:
            config: Settings for this run, already passed through notification setup.
            reporter: Audit log and report buffer writer.
            registry: Capability registry; a real one is created if omitted.
            mailer: Email reporter; built from config if omitted.
        """
        self.config = config
        self.reporter = reporter
        self.registry = registry or CapabilityRegistry()
        self.mailer = mailer or EmailReporter(
            self.registry,
            transport=config.mail_transport,
            smtp_server=config.smtp_server,
            smtp_port=config.smtp_port,
            from_address=config.from_address,
        )
        self.logger = logging.getLogger(__name__)

        self.backup = BackupStage(config, reporter, FileCopier(self.registry))
        self.cleanup = CleanupStage(config, reporter, DatabaseCompactor())
        self.disk = DiskAnalyzer(config, reporter, DiskUsageProbe(self.registry))
        self.resources = ResourceAnalyzer(
            config, reporter,
            MemoryProbe(self.registry),
            ProcessProbe(self.registry),
            UptimeProbe(self.registry),
        )
        self.suggestions = SuggestionEngine(reporter, self.registry)

    def run(self) -> Optional[bool]:
        """Run every stage once, in order.

        Returns:
            Whether the email report was sent, or None if notifications are off.
        """
        self.logger.info("Starting system doctor run")

        try:
            self.backup.run()
            self.cleanup.run()
            self.disk.run()
            self.resources.run()
            self.suggestions.run()
            email_sent = self.send_email_report()
        finally:
            self.reporter.discard_report()

        self.summarize(email_sent)
        self.logger.info("System doctor run completed")
        return email_sent

    def send_email_report(self) -> Optional[bool]:
        """Append the summary block and send the report buffer.

        The report buffer is deleted whether or not the transport accepts it.
        """
        if not (self.config.notify and self.config.recipient):
            return None

        self.reporter.section("Sending Email Report")
        try:
            for line in ["\n\n=== SUMMARY ===",
                         f"Script executed on: {format_date(datetime.now())}",
                         f"Hostname: {self.config.hostname}",
                         f"Log file location: {self.config.log_path}",
                         f"Backup directory: {self.config.backup_root}"]:
                self.reporter.mirror(line)

            sent = self.mailer.send_report(
                subject=self.config.email_subject,
                recipient=self.config.recipient,
                text_content=self.reporter.read_report(),
            )
        finally:
            self.reporter.discard_report()

        if sent:
            self.reporter.success(f"Email report sent to {self.config.recipient}")
        else:
            self.reporter.error("Failed to send email report")
        return sent

    def summarize(self, email_sent: Optional[bool] = None) -> None:
        self.reporter.section("Summary")
        self.reporter.note("System Doctor has completed its analysis and cleanup.", mirror=False)
        self.reporter.note(f"A log file has been saved to: {click.style(self.config.log_path, fg='green')}",
                           mirror=False)
        self.reporter.note(f"Critical files were backed up to: {click.style(self.config.backup_root, fg='green')}",
                           mirror=False)
        if email_sent:
            self.reporter.note(f"A report has been emailed to: {click.style(self.config.recipient, fg='green')}",
                               mirror=False)
        self.reporter.info("Script completed successfully")
