"""Configuration validation for system doctor."""

from typing import Any, Dict, List

KNOWN_SECTIONS = ['backup', 'cleanup', 'thresholds', 'analysis', 'email', 'logging']
MAIL_TRANSPORTS = ['auto', 'smtp', 'msmtp', 'sendmail', 'mail']
LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


class ConfigValidator:
    """Validates system doctor configuration."""

    def validate(self, config: Dict[str, Any]) -> None:
        """Validate configuration data.

        Args:
            config: Configuration dictionary to validate. Sections may be absent.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not isinstance(config, dict):
            raise ValueError("Configuration must be a mapping of sections")

        self._validate_structure(config)
        self._validate_backup(config.get('backup') or {})
        self._validate_cleanup(config.get('cleanup') or {})
        self._validate_thresholds(config.get('thresholds') or {})
        self._validate_analysis(config.get('analysis') or {})
        self._validate_email_config(config.get('email') or {})
        self._validate_logging(config.get('logging') or {})

    def _validate_structure(self, config: Dict[str, Any]) -> None:
        unknown = [section for section in config if section not in KNOWN_SECTIONS]
        if unknown:
            raise ValueError(f"Unknown configuration sections: {unknown}")

        for section in KNOWN_SECTIONS:
            value = config.get(section)
            if value is not None and not isinstance(value, dict):
                raise ValueError(f"Configuration section '{section}' must be a dictionary")

    def _validate_backup(self, backup: Dict[str, Any]) -> None:
        if 'critical_dirs' in backup:
            self._require_string_list(backup['critical_dirs'], 'backup.critical_dirs', allow_empty=False)
        if 'exclude_patterns' in backup:
            self._require_string_list(backup['exclude_patterns'], 'backup.exclude_patterns', allow_empty=True)

    def _validate_cleanup(self, cleanup: Dict[str, Any]) -> None:
        if 'temp_root' in cleanup and not self._is_non_empty_string(cleanup['temp_root']):
            raise ValueError("cleanup.temp_root must be a non-empty path")
        if 'max_age_days' in cleanup:
            self._require_positive_integer(cleanup['max_age_days'], 'cleanup.max_age_days')

    def _validate_thresholds(self, thresholds: Dict[str, Any]) -> None:
        for key in ['disk_percent', 'memory_percent']:
            if key in thresholds:
                value = thresholds[key]
                self._require_positive_number(value, f'thresholds.{key}')
                if value > 100:
                    raise ValueError(f"thresholds.{key} must be at most 100, got {value}")
        if 'cpu_load' in thresholds:
            self._require_positive_number(thresholds['cpu_load'], 'thresholds.cpu_load')

    def _validate_analysis(self, analysis: Dict[str, Any]) -> None:
        for key in ['top_entries', 'large_file_mb', 'top_processes']:
            if key in analysis:
                self._require_positive_integer(analysis[key], f'analysis.{key}')
        if 'log_root' in analysis and not self._is_non_empty_string(analysis['log_root']):
            raise ValueError("analysis.log_root must be a non-empty path")

    def _validate_email_config(self, email_config: Dict[str, Any]) -> None:
        """Validate email configuration.

        Args:
            email_config: Email configuration dictionary.

        Raises:
            ValueError: If email configuration is invalid.
        """
        transport = email_config.get('transport', 'auto')
        if transport not in MAIL_TRANSPORTS:
            raise ValueError(f"Email configuration has invalid transport: {transport}")

        if transport == 'smtp' and not email_config.get('smtp_server', 'localhost'):
            raise ValueError("Email transport 'smtp' requires smtp_server")

        if 'smtp_port' in email_config:
            try:
                port = int(email_config['smtp_port'])
                if not (1 <= port <= 65535):
                    raise ValueError()
            except (ValueError, TypeError):
                raise ValueError(f"Email configuration has invalid SMTP port: {email_config['smtp_port']}")

        if 'report_dir' in email_config and not self._is_non_empty_string(email_config['report_dir']):
            raise ValueError("email.report_dir must be a non-empty path")

    def _validate_logging(self, logging_config: Dict[str, Any]) -> None:
        level = logging_config.get('level', 'WARNING')
        if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {level}")

    def _require_string_list(self, value: Any, name: str, allow_empty: bool) -> None:
        if not isinstance(value, list) or (not value and not allow_empty):
            raise ValueError(f"{name} must be a {'list' if allow_empty else 'non-empty list'} of paths")
        invalid: List[Any] = [item for item in value if not self._is_non_empty_string(item)]
        if invalid:
            raise ValueError(f"{name} contains invalid entries: {invalid}")

    def _require_positive_integer(self, value: Any, name: str) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValueError(f"{name} must be a positive integer, got {value!r}")

    def _require_positive_number(self, value: Any, name: str) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ValueError(f"{name} must be a positive number, got {value!r}")

    @staticmethod
    def _is_non_empty_string(value: Any) -> bool:
        return isinstance(value, str) and bool(value.strip())
