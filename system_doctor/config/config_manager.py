"""Configuration management for system doctor."""

import copy
import os
import socket
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .config_validator import ConfigValidator
from ..core.models import DoctorConfig

DEFAULTS: Dict[str, Dict[str, Any]] = {
    'backup': {
        'critical_dirs': ['/etc', '~/.ssh', '~/.config'],
        'exclude_patterns': ['.*cache*'],
    },
    'cleanup': {
        'temp_root': '/tmp',
        'max_age_days': 1,
    },
    'thresholds': {
        'disk_percent': 90,
        'memory_percent': 80,
        'cpu_load': 80,
    },
    'analysis': {
        'top_entries': 10,
        'large_file_mb': 100,
        'top_processes': 5,
        'log_root': '/var/log',
    },
    'email': {
        'transport': 'auto',
        'smtp_server': 'localhost',
        'smtp_port': 25,
        'from_address': None,
        'report_dir': '/tmp',
    },
    'logging': {
        'level': 'WARNING',
        'file': None,
    },
}


class ConfigManager:
    """Loads optional settings and builds the per-run DoctorConfig."""

    DEFAULT_CONFIG_LOCATIONS = [
        "system-doctor.yaml",
        "system-doctor.yml",
        os.path.expanduser("~/.system-doctor/config.yaml"),
        os.path.expanduser("~/.system-doctor/config.yml"),
        "/etc/system-doctor/config.yaml",
        "/etc/system-doctor/config.yml",
    ]

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional path to config file. If not provided,
                        will search in default locations, and fall back
                        to built-in defaults when none exists.
        """
        self.config_path = config_path
        self.config_data: Dict[str, Any] = {}
        self.validator = ConfigValidator()

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from file, if any, merged over the defaults.

        Returns:
            Dictionary containing configuration data.

        Raises:
            FileNotFoundError: If an explicit config path does not exist.
            ValueError: If config file is invalid.
        """
        config_file = self._find_config_file()
        self.config_data = {}

        if config_file:
            try:
                with open(config_file, 'r', encoding='utf-8') as f:
                    self.config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in config file {config_file}: {e}")
            except OSError as e:
                raise ValueError(f"Error reading config file {config_file}: {e}")

        self.validator.validate(self.config_data)
        self._set_defaults()

        return self.config_data

    def _find_config_file(self) -> Optional[str]:
        """Find configuration file in default locations.

        Returns:
            Path to configuration file, or None if there is none.

        Raises:
            FileNotFoundError: If an explicit config path does not exist.
        """
        if self.config_path:
            if os.path.exists(self.config_path):
                return self.config_path
            else:
                raise FileNotFoundError(f"Config file not found: {self.config_path}")

        for location in self.DEFAULT_CONFIG_LOCATIONS:
            if os.path.exists(location):
                return location

        return None

    def _set_defaults(self):
        """Set default values for optional configuration parameters."""
        for section, section_defaults in DEFAULTS.items():
            if section not in self.config_data or self.config_data[section] is None:
                self.config_data[section] = {}
            for key, value in section_defaults.items():
                if key not in self.config_data[section]:
                    self.config_data[section][key] = copy.deepcopy(value)

    def get_section(self, name: str) -> Dict[str, Any]:
        return self.config_data.get(name, {})

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration.

        Returns:
            Logging configuration dictionary.
        """
        return self.get_section('logging')

    def build_doctor_config(self, home: Optional[str] = None, hostname: Optional[str] = None,
                            run_date: Optional[date] = None) -> DoctorConfig:
        """Build the immutable settings for one run.

        Args:
            home: Home directory; defaults to the current user's.
            hostname: Host name; defaults to this machine's.
            run_date: Date used in log, backup and report names; defaults to today.

        Returns:
            DoctorConfig with notifications disabled.
        """
        if not self.config_data:
            self.load_config()

        home = home or str(Path.home())
        hostname = hostname or socket.gethostname()
        run_date = run_date or date.today()
        stamp = run_date.strftime('%Y-%m-%d')

        backup = self.get_section('backup')
        cleanup = self.get_section('cleanup')
        thresholds = self.get_section('thresholds')
        analysis = self.get_section('analysis')
        email = self.get_section('email')

        def expand(path: str) -> str:
            if path == '~' or path.startswith('~/'):
                return os.path.join(home, path[2:]) if len(path) > 1 else home
            return path

        return DoctorConfig(
            home=home,
            hostname=hostname,
            run_date=run_date,
            log_path=os.path.join(home, f"system-doctor-{stamp}.log"),
            backup_root=os.path.join(home, f"system-doctor-backup-{stamp}"),
            report_path=os.path.join(expand(email['report_dir']), f"system-doctor-report-{stamp}.txt"),
            critical_dirs=tuple(expand(d) for d in backup['critical_dirs']),
            backup_excludes=tuple(backup['exclude_patterns']),
            temp_root=expand(cleanup['temp_root']),
            temp_max_age_days=cleanup['max_age_days'],
            firefox_root=os.path.join(home, '.mozilla', 'firefox'),
            chromium_roots=(os.path.join(home, '.cache', 'google-chrome'),
                            os.path.join(home, '.cache', 'chromium')),
            thumbnail_cache=os.path.join(home, '.cache', 'thumbnails'),
            system_log_root=expand(analysis['log_root']),
            disk_threshold=thresholds['disk_percent'],
            memory_threshold=thresholds['memory_percent'],
            cpu_threshold=thresholds['cpu_load'],
            top_entries=analysis['top_entries'],
            large_file_mb=analysis['large_file_mb'],
            top_processes=analysis['top_processes'],
            mail_transport=email['transport'],
            smtp_server=email['smtp_server'],
            smtp_port=int(email['smtp_port']),
            from_address=email['from_address'],
        )
