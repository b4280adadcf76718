"""
Data model shared by the visual detector and the environment monitor
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from shared.constants import (
    Config,
    EnvironmentWarningLevel,
    HeadDirection,
    Severity,
    ViolationType,
    VisualWarningLevel,
)

# A landmark is (x, y) or (x, y, z) in normalized image coordinates
Landmark = Tuple[float, ...]
LandmarkSet = Sequence[Landmark]


@dataclass(frozen=True)
class Calibration:
    """Per-session baseline used as the zero-point for anomaly comparisons"""
    center_gaze_h: float = Config.DEFAULT_CENTER_H
    center_gaze_v: float = Config.DEFAULT_CENTER_V
    baseline_eye_opening: float = 0.0
    baseline_head_yaw: float = 0.0
    tolerance_h: float = Config.TOLERANCE_H
    tolerance_v: float = Config.TOLERANCE_V
    tolerance_eye_opening: float = Config.TOLERANCE_EYE_OPENING
    tolerance_head_yaw: float = Config.TOLERANCE_HEAD_YAW
    is_calibrated: bool = False
    captured_at: Optional[float] = None
    reference_image: Optional[str] = None

    def __post_init__(self):
        for name in ("tolerance_h", "tolerance_v", "tolerance_eye_opening", "tolerance_head_yaw"):
            if not getattr(self, name) > 0:
                raise ValueError(f"{name} must be strictly positive, got {getattr(self, name)}")


@dataclass(frozen=True)
class GazeSample:
    """Normalized iris position within each eye's bounding box"""
    left_h: float = 0.0
    right_h: float = 0.0
    left_v: float = 0.0
    right_v: float = 0.0
    avg_h: float = 0.0
    avg_v: float = 0.0


@dataclass(frozen=True)
class HeadPose:
    """Head yaw relative to the calibrated baseline"""
    is_moving: bool = False
    direction: Optional[HeadDirection] = None
    angle_degrees: float = 0.0


@dataclass
class DetectionFrame:
    """Result of analyzing one video frame"""
    gaze: GazeSample
    head_pose: HeadPose
    face_count: int
    is_looking_up: bool
    warnings: List[str]
    warning_level: VisualWarningLevel
    suspicion: int = 0

    @property
    def multiple_detected(self) -> bool:
        return self.face_count > 1


@dataclass(frozen=True)
class Violation:
    """A discrete environment-integrity infraction"""
    id: str
    type: ViolationType
    timestamp: float
    severity: Severity
    details: Optional[str] = None
    screenshot: Optional[str] = None


@dataclass(frozen=True)
class EnvironmentState:
    """Point-in-time snapshot of an Environment Integrity Monitor"""
    is_monitoring: bool = False
    is_fullscreen: bool = False
    violations: Tuple[Violation, ...] = ()
    violation_counts: Dict[ViolationType, int] = field(default_factory=dict)
    total_violations: int = 0
    warning_level: EnvironmentWarningLevel = EnvironmentWarningLevel.NONE
    is_terminated: bool = False
