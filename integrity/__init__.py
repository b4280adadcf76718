"""
Proctoring Integrity Engine
Visual behavior analysis and environment integrity monitoring for proctored sessions
"""

from .errors import (
    IntegrityError,
    InitializationError,
    CalibrationError,
    DetectionError,
    CapabilityError,
    SessionTerminatedError,
)
from .environment_monitor import EnvironmentIntegrityMonitor, EnvironmentConfig, WarningThresholds
from .signals import SignalSource, SignalBridge, SignalEvent
from .session import ProctoringSession, overall_warning_level

__all__ = [
    'IntegrityError',
    'InitializationError',
    'CalibrationError',
    'DetectionError',
    'CapabilityError',
    'SessionTerminatedError',
    'EnvironmentIntegrityMonitor',
    'EnvironmentConfig',
    'WarningThresholds',
    'SignalSource',
    'SignalBridge',
    'SignalEvent',
    'ProctoringSession',
    'overall_warning_level',
]
