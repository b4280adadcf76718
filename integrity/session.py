"""
Proctoring Session
Owns one visual analyzer and one environment monitor for a single test
session, and combines their warning levels for the consumer
"""

from typing import Callable, Optional

from integrity.ai_engine.analyzer import VisualBehaviorAnalyzer, VisualConfig
from integrity.environment_monitor import EnvironmentConfig, EnvironmentIntegrityMonitor
from integrity.models import DetectionFrame
from integrity.scheduling import Scheduler, TimerScheduler
from integrity.signals import SignalSource
from shared.constants import EnvironmentWarningLevel, VisualWarningLevel
from shared.logging_config import get_environment_logger

logger = get_environment_logger()


def overall_warning_level(
    environment_level: EnvironmentWarningLevel,
    frame: Optional[DetectionFrame] = None
) -> EnvironmentWarningLevel:
    """
    Combine both detectors into one escalation level

    high:   environment high, or visual warning
    medium: environment medium, or visual caution
    low:    environment low
    """
    visual = frame.warning_level if frame is not None else VisualWarningLevel.OK

    if environment_level is EnvironmentWarningLevel.HIGH or visual is VisualWarningLevel.WARNING:
        return EnvironmentWarningLevel.HIGH
    if environment_level is EnvironmentWarningLevel.MEDIUM or visual is VisualWarningLevel.CAUTION:
        return EnvironmentWarningLevel.MEDIUM
    if environment_level is EnvironmentWarningLevel.LOW:
        return EnvironmentWarningLevel.LOW
    return EnvironmentWarningLevel.NONE


class ProctoringSession:
    """
    Explicit, caller-owned pairing of the two detectors

    Several sessions can live in one process; they share nothing but the
    scheduler if one is passed in.
    """

    def __init__(
        self,
        signals: SignalSource,
        environment_config: Optional[EnvironmentConfig] = None,
        visual_config: Optional[VisualConfig] = None,
        scheduler: Optional[Scheduler] = None,
        snapshot_provider: Optional[Callable[[], Optional[str]]] = None
    ):
        self.scheduler = scheduler or TimerScheduler()
        self.analyzer = VisualBehaviorAnalyzer(visual_config)
        self.monitor = EnvironmentIntegrityMonitor(
            signals,
            config=environment_config,
            scheduler=self.scheduler,
            snapshot_provider=snapshot_provider,
        )
        self.last_frame: Optional[DetectionFrame] = None

    def record_frame(self, frame: DetectionFrame) -> DetectionFrame:
        """on_detection hook for the detection loop; keeps the latest frame for aggregation"""
        self.last_frame = frame
        return frame

    def overall_warning_level(self) -> EnvironmentWarningLevel:
        return overall_warning_level(self.monitor.get_state().warning_level, self.last_frame)

    @property
    def is_terminated(self) -> bool:
        return self.monitor.get_state().is_terminated

    def close(self):
        """Stop both detectors; idempotent"""
        self.analyzer.stop_detection()
        self.monitor.stop()
        logger.info("Proctoring session closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
