"""Command-line interface for system doctor."""

import logging
import sys
from datetime import datetime
from typing import Optional

import click

from .config.config_manager import ConfigManager
from .core.capabilities import CapabilityRegistry
from .core.doctor import SystemDoctor, check_privileges
from .core.models import DoctorError
from .core.notifications import NotificationConfigurator
from .core.reporter import Reporter
from .reporters.email_reporter import EmailReporter
from .utils.formatters import format_date

BANNER_RULE = "=================================================="


def setup_logging(level: str, log_file: Optional[str] = None):
    """Set up logging configuration."""
    # Convert string level to logging constant
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            click.echo(f"Warning: Could not set up file logging: {e}", err=True)


def _banner(title: str):
    click.secho(BANNER_RULE, fg='cyan')
    click.secho(title, fg='cyan')
    click.secho(BANNER_RULE, fg='cyan')


@click.command()
def cli():
    """System Doctor - back up critical files, clean caches and check system health."""
    try:
        config_manager = ConfigManager()
        config_manager.load_config()
        logging_config = config_manager.get_logging_config()
        setup_logging(logging_config['level'], logging_config['file'])
        config = config_manager.build_doctor_config()
    except (ValueError, FileNotFoundError) as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    click.clear()
    _banner("      System Doctor - Cleanup & Health Script     ")
    click.echo(f"Started at: {format_date(datetime.now())}")
    click.echo(f"Log file: {config.log_path}")
    click.echo()

    try:
        reporter = Reporter(config.log_path)
    except OSError as e:
        click.echo(f"Error: could not open log file {config.log_path}: {e}", err=True)
        sys.exit(1)

    try:
        reporter.info("Script started")
        check_privileges(reporter)

        registry = CapabilityRegistry()
        mailer = EmailReporter(
            registry,
            transport=config.mail_transport,
            smtp_server=config.smtp_server,
            smtp_port=config.smtp_port,
            from_address=config.from_address,
        )
        config = NotificationConfigurator(reporter, mailer).configure(config)

        click.secho("This script will analyze your system and suggest cleanup actions.", fg='yellow')
        click.secho("It will also clean temporary files and cache directories.", fg='yellow')
        click.secho("Some operations may require root privileges.", fg='red')
        if not click.confirm("Do you want to proceed?", default=False):
            reporter.discard_report()
            click.echo("Operation cancelled.")
            reporter.info("Operation cancelled by user")
            sys.exit(0)

        SystemDoctor(config, reporter, registry, mailer).run()
    except (DoctorError, OSError) as e:
        reporter.discard_report()
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        reporter.close()

    click.echo()
    click.secho(BANNER_RULE, fg='cyan')
    click.echo(f"Completed at: {format_date(datetime.now())}")
    click.secho(BANNER_RULE, fg='cyan')


def main():
    """Main CLI entry point."""
    cli()


if __name__ == '__main__':
    main()
