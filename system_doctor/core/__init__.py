"""Core pipeline stages."""

from .doctor import SystemDoctor, check_privileges
from .reporter import Reporter
from .notifications import NotificationConfigurator
from .capabilities import CapabilityRegistry
from .models import DoctorConfig, DoctorError, StepOutcome, StepResult

__all__ = [
    "SystemDoctor",
    "check_privileges",
    "Reporter",
    "NotificationConfigurator",
    "CapabilityRegistry",
    "DoctorConfig",
    "DoctorError",
    "StepOutcome",
    "StepResult",
]
