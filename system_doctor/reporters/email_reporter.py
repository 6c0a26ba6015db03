"""Email reporter for sending system doctor reports through the local mail transport."""

import logging
import smtplib
import socket
import subprocess
from email.mime.text import MIMEText
from typing import Optional

from ..core.capabilities import CapabilityRegistry, ToolUnavailableError

LOCAL_TRANSPORTS = ['msmtp', 'sendmail', 'mail']
TRANSPORTS = ['auto', 'smtp'] + LOCAL_TRANSPORTS


class EmailReporter:
    """Handles sending reports via a local mail transport or SMTP."""

    def __init__(self, registry: CapabilityRegistry, transport: str = 'auto',
                 smtp_server: str = 'localhost', smtp_port: int = 25,
                 from_address: Optional[str] = None):
        """Initialize email reporter.

        Args:
            registry: Capability registry used to probe and run transports.
            transport: One of `auto`, `smtp`, `msmtp`, `sendmail`, `mail`.
                `auto` picks the first installed local transport.
            smtp_server: SMTP server hostname for the `smtp` transport.
            smtp_port: SMTP server port.
            from_address: Optional From header.
        """
        if transport not in TRANSPORTS:
            raise ValueError(f"Unknown mail transport: {transport}")

        self.registry = registry
        self.transport = transport
        self.smtp_server = smtp_server
        self.smtp_port = smtp_port
        self.from_address = from_address
        self.logger = logging.getLogger(__name__)

    def resolve_transport(self) -> Optional[str]:
        """Name of the transport that would be used, or None if none is usable."""
        if self.transport == 'smtp':
            return 'smtp' if self.smtp_server else None
        if self.transport == 'auto':
            for candidate in LOCAL_TRANSPORTS:
                if self.registry.available(candidate):
                    return candidate
            return None
        return self.transport if self.registry.available(self.transport) else None

    def is_available(self) -> bool:
        return self.resolve_transport() is not None

    def send_report(self, subject: str, recipient: str, text_content: str) -> bool:
        """Send a plain-text report.

        Args:
            subject: Email subject line.
            recipient: Destination address.
            text_content: Report body.

        Returns:
            True if the transport accepted the message.
        """
        if not recipient:
            self.logger.error("No recipient address configured")
            return False

        transport = self.resolve_transport()
        if transport is None:
            self.logger.error("No mail transport available")
            return False

        msg = self._create_message(subject, recipient, text_content)

        try:
            if transport == 'smtp':
                self._send_via_smtp(msg)
                sent = True
            elif transport == 'mail':
                sent = self._send_via_mail(subject, recipient, text_content)
            else:
                sent = self._send_via_pipe(transport, recipient, msg)
        except (OSError, smtplib.SMTPException, subprocess.SubprocessError, ToolUnavailableError) as e:
            self.logger.error(f"Failed to send email report: {e}")
            return False

        if sent:
            self.logger.info(f"Email report sent to {recipient} via {transport}")
        return sent

    def _create_message(self, subject: str, recipient: str, text_content: str) -> MIMEText:
        msg = MIMEText(text_content, 'plain', 'utf-8')
        msg['Subject'] = subject
        msg['To'] = recipient
        if self.from_address:
            msg['From'] = self.from_address
        return msg

    def _send_via_pipe(self, transport: str, recipient: str, msg: MIMEText) -> bool:
        """Hand a complete RFC 822 message to msmtp or sendmail on stdin."""
        args = [recipient] if transport == 'msmtp' else ['-i', recipient]
        result = self.registry.run(transport, *args, input_text=msg.as_string())
        if result.returncode != 0:
            self.logger.error(f"{transport} failed with return code {result.returncode}: {result.stderr.strip()}")
            return False
        return True

    def _send_via_mail(self, subject: str, recipient: str, text_content: str) -> bool:
        result = self.registry.run('mail', '-s', subject, recipient, input_text=text_content)
        if result.returncode != 0:
            self.logger.error(f"mail failed with return code {result.returncode}: {result.stderr.strip()}")
            return False
        return True

    def _send_via_smtp(self, msg: MIMEText) -> None:
        self.logger.debug(f"Connecting to SMTP server {self.smtp_server}:{self.smtp_port}")

        with smtplib.SMTP(self.smtp_server, self.smtp_port) as server:
            from_address = self.from_address or f"system-doctor@{socket.gethostname()}"
            server.send_message(msg, from_addr=from_address)
            self.logger.debug("Email message sent successfully")
