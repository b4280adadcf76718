"""
Visual Behavior Analyzer Module
Turns per-frame facial landmarks into gaze, head-turn, eyelid and
multi-person warnings, smoothed by a bounded suspicion counter
"""

import threading
import time
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, List, Optional, Sequence

from integrity.ai_engine import geometry
from integrity.ai_engine.detection_loop import DetectionLoop
from integrity.errors import CalibrationError, DetectionError
from integrity.models import Calibration, DetectionFrame, GazeSample, HeadPose, LandmarkSet
from integrity.scheduling import Scheduler
from shared.constants import (
    Config,
    LOOKING_UP_MESSAGE,
    NO_FACE_MESSAGE,
    VisualWarningLevel,
)
from shared.logging_config import get_vision_logger

logger = get_vision_logger()


@dataclass
class VisualConfig:
    """Feature toggles and thresholds for the visual detector"""
    enable_gaze_detection: bool = True
    enable_head_movement: bool = True
    enable_multiple_face_detection: bool = True
    enable_eye_opening_detection: bool = True

    caution_threshold: int = Config.CAUTION_THRESHOLD
    warning_threshold: int = Config.WARNING_THRESHOLD

    step_up: int = Config.SUSPICION_STEP_UP
    step_down: int = Config.SUSPICION_STEP_DOWN
    ceiling: int = Config.SUSPICION_CEILING

    tolerance_h: float = Config.TOLERANCE_H
    tolerance_v: float = Config.TOLERANCE_V
    tolerance_eye_opening: float = Config.TOLERANCE_EYE_OPENING
    tolerance_head_yaw: float = Config.TOLERANCE_HEAD_YAW

    def __post_init__(self):
        if not 0 <= self.caution_threshold < self.warning_threshold:
            raise ValueError(
                f"caution_threshold ({self.caution_threshold}) must be below "
                f"warning_threshold ({self.warning_threshold})"
            )
        if self.step_up <= 0 or self.step_down <= 0 or self.ceiling <= 0:
            raise ValueError("suspicion steps and ceiling must be positive")
        for name in ("tolerance_h", "tolerance_v", "tolerance_eye_opening", "tolerance_head_yaw"):
            if not getattr(self, name) > 0:
                raise ValueError(f"{name} must be strictly positive, got {getattr(self, name)}")

    def uncalibrated(self) -> Calibration:
        """Default calibration carrying this config's tolerances"""
        return Calibration(
            tolerance_h=self.tolerance_h,
            tolerance_v=self.tolerance_v,
            tolerance_eye_opening=self.tolerance_eye_opening,
            tolerance_head_yaw=self.tolerance_head_yaw,
        )


class VisualBehaviorAnalyzer:
    """
    Session-scoped visual detector

    Holds the calibration baseline and a suspicion counter. Every anomalous
    frame raises the counter by step_up (capped at ceiling), every clean
    frame lowers it by step_down (floored at zero). The counter maps to
    ok / caution / warning through two ordered thresholds.
    """

    def __init__(self, config: Optional[VisualConfig] = None):
        self.config = config or VisualConfig()
        self._calibration = self.config.uncalibrated()
        self._suspicion = 0
        self._loop: Optional[DetectionLoop] = None
        self._lock = threading.Lock()

    # ==================== PROPERTIES ====================

    @property
    def calibration(self) -> Calibration:
        return self._calibration

    @property
    def suspicion(self) -> int:
        return self._suspicion

    @property
    def is_detecting(self) -> bool:
        return self._loop is not None and self._loop.is_running

    def set_config(self, **overrides):
        """
        Replace config fields; tolerances apply to the current calibration too

        Raises:
            TypeError: on unknown option names
            ValueError: on invalid values; nothing is changed in that case
        """
        known = {f.name for f in fields(VisualConfig)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown visual config option(s): {', '.join(sorted(unknown))}")

        config = replace(self.config, **overrides)
        tolerances = {k: v for k, v in overrides.items() if k.startswith("tolerance_")}
        calibration = replace(self._calibration, **tolerances) if tolerances else self._calibration

        self.config = config
        self._calibration = calibration

    # ==================== CALIBRATION ====================

    def calibrate(self, landmarks: LandmarkSet, reference_image: Optional[str] = None) -> Calibration:
        """
        Capture the baseline from a single reference frame

        Args:
            landmarks: Landmark set of the candidate looking at the screen
            reference_image: Optional still of the calibration moment

        Returns:
            The new Calibration, replacing any previous one

        Raises:
            CalibrationError: if the landmark set is empty or degenerate
        """
        try:
            geometry.validate_landmarks(landmarks)
        except ValueError as e:
            raise CalibrationError(f"Cannot calibrate: {e}")

        gaze = geometry.compute_gaze(landmarks)
        eye_opening = geometry.compute_eye_opening(landmarks)
        head_yaw = geometry.compute_head_yaw(landmarks)

        if eye_opening <= 0:
            raise CalibrationError("Cannot calibrate: eyes appear closed (zero eye opening)")

        self._calibration = Calibration(
            center_gaze_h=gaze.avg_h,
            center_gaze_v=gaze.avg_v,
            baseline_eye_opening=eye_opening,
            baseline_head_yaw=head_yaw,
            tolerance_h=self.config.tolerance_h,
            tolerance_v=self.config.tolerance_v,
            tolerance_eye_opening=self.config.tolerance_eye_opening,
            tolerance_head_yaw=self.config.tolerance_head_yaw,
            is_calibrated=True,
            captured_at=time.time(),
            reference_image=reference_image,
        )

        logger.info(
            f"Calibration complete: gaze center=({gaze.avg_h:.3f}, {gaze.avg_v:.3f}), "
            f"eye opening={eye_opening:.4f}, head yaw={head_yaw:.2f}°"
        )
        return self._calibration

    def reset_calibration(self):
        """Drop the baseline; anomaly checks stay disabled until calibrate() runs again"""
        self._calibration = self.config.uncalibrated()

    # ==================== FRAME ANALYSIS ====================

    def process_frame(self, faces: Sequence[LandmarkSet]) -> DetectionFrame:
        """
        Analyze the faces detected in one video frame

        Only the first face is analyzed; additional faces are counted.

        Args:
            faces: Landmark sets, one per detected face (may be empty)

        Returns:
            DetectionFrame with warnings and the resulting warning level

        Raises:
            DetectionError: if the first face's landmark set is malformed
        """
        face_count = len(faces)
        warnings: List[str] = []

        if self.config.enable_multiple_face_detection and face_count > 1:
            warnings.append(f"{face_count} people detected")

        if face_count == 0:
            # Suspicion is left as is while nobody is in view
            return DetectionFrame(
                gaze=GazeSample(),
                head_pose=HeadPose(),
                face_count=0,
                is_looking_up=False,
                warnings=[NO_FACE_MESSAGE],
                warning_level=VisualWarningLevel.WARNING,
                suspicion=self._suspicion,
            )

        landmarks = faces[0]
        try:
            geometry.validate_landmarks(landmarks)
        except ValueError as e:
            raise DetectionError(f"Malformed face in frame: {e}")

        calibration = self._calibration

        gaze = geometry.compute_gaze(landmarks)
        if self.config.enable_gaze_detection:
            directions = geometry.gaze_out_of_bounds(gaze, calibration)
            if directions:
                warnings.append(f"Looking {' '.join(directions)}")

        head_pose = geometry.compute_head_pose(landmarks, calibration)
        if self.config.enable_head_movement and head_pose.is_moving:
            warnings.append(f"Head turned {head_pose.direction.value}")

        looking_up = (
            self.config.enable_eye_opening_detection
            and geometry.is_looking_up(landmarks, calibration)
        )
        if looking_up:
            warnings.append(LOOKING_UP_MESSAGE)

        suspicion = self._update_suspicion(anomalous=bool(warnings))

        return DetectionFrame(
            gaze=gaze,
            head_pose=head_pose,
            face_count=face_count,
            is_looking_up=looking_up,
            warnings=warnings,
            warning_level=self._warning_level(suspicion),
            suspicion=suspicion,
        )

    def _update_suspicion(self, anomalous: bool) -> int:
        with self._lock:
            if anomalous:
                self._suspicion = min(self._suspicion + self.config.step_up, self.config.ceiling)
            else:
                self._suspicion = max(self._suspicion - self.config.step_down, 0)
            return self._suspicion

    def _warning_level(self, suspicion: int) -> VisualWarningLevel:
        if suspicion > self.config.warning_threshold:
            return VisualWarningLevel.WARNING
        if suspicion > self.config.caution_threshold:
            return VisualWarningLevel.CAUTION
        return VisualWarningLevel.OK

    # ==================== DETECTION LOOP ====================

    def start_detection(
        self,
        detector,
        frame_source: Callable[[], Any],
        on_detection: Callable[[DetectionFrame], None],
        on_error: Optional[Callable[[DetectionError], None]] = None,
        scheduler: Optional[Scheduler] = None,
        timeout: Optional[float] = None,
        autostart: bool = True
    ) -> DetectionLoop:
        """
        Create the frame loop feeding this analyzer, replacing any running one

        Args:
            detector: Landmark backend exposing detect(frame, timestamp_ms)
            frame_source: Callable returning the next frame or None
            on_detection: Receives every DetectionFrame
            on_error: Receives the DetectionError of each skipped frame
            scheduler: Drives the loop; a ManualScheduler allows single-stepping
            timeout: Seconds allowed per inference call
            autostart: Start ticking immediately

        Returns:
            The DetectionLoop
        """
        if self._loop is not None:
            self.stop_detection()

        self._loop = DetectionLoop(
            self,
            detector,
            frame_source,
            on_detection,
            on_error=on_error,
            scheduler=scheduler,
            timeout=timeout,
        )
        if autostart:
            self._loop.start()
        return self._loop

    def stop_detection(self):
        """Reset the suspicion counter and cancel scheduled frame processing; idempotent"""
        if self._loop is not None:
            self._loop.stop()
            self._loop = None
        with self._lock:
            self._suspicion = 0
