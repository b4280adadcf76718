"""
Visual Behavior Analyzer Tests
Tests for calibration, per-frame warnings and the suspicion counter
"""

import random

import pytest

from conftest import make_face
from integrity.ai_engine.analyzer import VisualBehaviorAnalyzer, VisualConfig
from integrity.errors import CalibrationError, DetectionError
from shared.constants import (
    Config,
    FaceLandmarks,
    LOOKING_UP_MESSAGE,
    NO_FACE_MESSAGE,
    VisualWarningLevel,
)


@pytest.fixture
def analyzer(face):
    """Analyzer calibrated on the straight-ahead synthetic face"""
    analyzer = VisualBehaviorAnalyzer()
    analyzer.calibrate(face)
    return analyzer


TURNED_HEAD = make_face(nose_dx=0.12)
LOOKING_RIGHT = make_face(iris_dx=-0.015)


class TestCalibration:
    """Test baseline capture"""

    def test_calibrate_sets_baseline(self, face):
        analyzer = VisualBehaviorAnalyzer()
        calibration = analyzer.calibrate(face, reference_image="data:image/jpeg;base64,AAAA")

        assert calibration.is_calibrated is True
        assert calibration.center_gaze_h == pytest.approx(0.5)
        assert calibration.center_gaze_v == pytest.approx(0.5)
        assert calibration.baseline_eye_opening == pytest.approx(0.02)
        assert calibration.baseline_head_yaw == pytest.approx(0.0, abs=1e-9)
        assert calibration.reference_image == "data:image/jpeg;base64,AAAA"
        assert calibration.captured_at is not None
        assert analyzer.calibration is calibration

    def test_calibrate_is_deterministic(self, face):
        first = VisualBehaviorAnalyzer().calibrate(face)
        second = VisualBehaviorAnalyzer().calibrate(face)

        assert first.center_gaze_h == second.center_gaze_h
        assert first.center_gaze_v == second.center_gaze_v
        assert first.baseline_eye_opening == second.baseline_eye_opening
        assert first.baseline_head_yaw == second.baseline_head_yaw

    def test_recalibrate_replaces_baseline(self, analyzer):
        calibration = analyzer.calibrate(make_face(iris_dx=0.01))
        assert calibration.center_gaze_h == pytest.approx(2 / 3)

    def test_config_tolerances_are_used(self, face):
        analyzer = VisualBehaviorAnalyzer(VisualConfig(tolerance_h=0.3))
        assert analyzer.calibrate(face).tolerance_h == 0.3

    def test_empty_landmarks(self):
        with pytest.raises(CalibrationError):
            VisualBehaviorAnalyzer().calibrate([])

    def test_short_landmarks(self):
        with pytest.raises(CalibrationError):
            VisualBehaviorAnalyzer().calibrate(make_face(count=100))

    def test_closed_eyes(self):
        with pytest.raises(CalibrationError, match="closed"):
            VisualBehaviorAnalyzer().calibrate(make_face(eye_open_scale=0.0))

    def test_non_finite_landmarks(self, face):
        face[FaceLandmarks.LEFT_EYE_OUTER] = (float("inf"), 0.4, 0.0)
        analyzer = VisualBehaviorAnalyzer()

        with pytest.raises(CalibrationError):
            analyzer.calibrate(face)
        assert analyzer.calibration.is_calibrated is False

    def test_reset_calibration(self, analyzer):
        analyzer.reset_calibration()
        assert analyzer.calibration.is_calibrated is False


class TestProcessFrame:
    """Test per-frame warnings"""

    def test_uncalibrated_never_flags_anomalies(self):
        analyzer = VisualBehaviorAnalyzer()

        for landmarks in (TURNED_HEAD, LOOKING_RIGHT, make_face(eye_open_scale=2.0)):
            result = analyzer.process_frame([landmarks])
            assert result.warnings == []
            assert result.warning_level is VisualWarningLevel.OK

        assert analyzer.suspicion == 0

    def test_clean_frame(self, analyzer, face):
        result = analyzer.process_frame([face])

        assert result.warnings == []
        assert result.face_count == 1
        assert result.multiple_detected is False
        assert result.is_looking_up is False
        assert result.warning_level is VisualWarningLevel.OK

    def test_head_turn(self, analyzer):
        result = analyzer.process_frame([TURNED_HEAD])

        assert result.warnings == ["Head turned RIGHT"]
        assert result.head_pose.is_moving is True
        assert result.suspicion == Config.SUSPICION_STEP_UP

    def test_gaze_direction(self, analyzer):
        result = analyzer.process_frame([LOOKING_RIGHT])
        assert result.warnings == ["Looking RIGHT"]

    def test_diagonal_gaze(self, analyzer):
        result = analyzer.process_frame([make_face(iris_dx=-0.015, iris_dy=-0.005)])
        assert result.warnings == ["Looking RIGHT-DOWN"]

    def test_looking_up(self, analyzer):
        result = analyzer.process_frame([make_face(eye_open_scale=1.5)])

        assert result.is_looking_up is True
        assert LOOKING_UP_MESSAGE in result.warnings

    def test_no_face(self, analyzer):
        result = analyzer.process_frame([])

        assert result.face_count == 0
        assert result.warnings == [NO_FACE_MESSAGE]
        assert result.warning_level is VisualWarningLevel.WARNING

    def test_multiple_faces(self, analyzer, face):
        result = analyzer.process_frame([face, make_face(), make_face()])

        assert result.face_count == 3
        assert result.multiple_detected is True
        assert result.warnings == ["3 people detected"]
        assert analyzer.suspicion == Config.SUSPICION_STEP_UP

    def test_multiple_faces_flagged_without_calibration(self, face):
        result = VisualBehaviorAnalyzer().process_frame([face, make_face()])
        assert result.warnings == ["2 people detected"]

    def test_only_first_face_is_analyzed(self, analyzer, face):
        result = analyzer.process_frame([face, TURNED_HEAD])
        assert result.warnings == ["2 people detected"]

    def test_disabled_checks(self, face):
        config = VisualConfig(
            enable_gaze_detection=False,
            enable_head_movement=False,
            enable_multiple_face_detection=False,
            enable_eye_opening_detection=False,
        )
        analyzer = VisualBehaviorAnalyzer(config)
        analyzer.calibrate(face)

        anomalous = make_face(iris_dx=-0.015, nose_dx=0.12, eye_open_scale=1.5)
        result = analyzer.process_frame([anomalous, make_face()])

        assert result.warnings == []
        assert analyzer.suspicion == 0

    def test_malformed_face(self, analyzer):
        with pytest.raises(DetectionError):
            analyzer.process_frame([make_face(count=10)])

    def test_malformed_face_leaves_counter(self, analyzer):
        analyzer.process_frame([TURNED_HEAD])
        with pytest.raises(DetectionError):
            analyzer.process_frame([[]])
        assert analyzer.suspicion == Config.SUSPICION_STEP_UP


class TestSuspicionCounter:
    """Test smoothing, clamping and level thresholds"""

    def test_caution_after_eight_anomalous_frames(self, analyzer):
        for _ in range(7):
            result = analyzer.process_frame([TURNED_HEAD])
        assert result.suspicion == 14
        assert result.warning_level is VisualWarningLevel.OK

        result = analyzer.process_frame([TURNED_HEAD])
        assert result.suspicion == 16
        assert result.warning_level is VisualWarningLevel.CAUTION

    def test_warning_after_sixteen_anomalous_frames(self, analyzer):
        for _ in range(15):
            result = analyzer.process_frame([TURNED_HEAD])
        assert result.warning_level is VisualWarningLevel.CAUTION

        result = analyzer.process_frame([TURNED_HEAD])
        assert result.suspicion == 32
        assert result.warning_level is VisualWarningLevel.WARNING

    def test_clamped_at_ceiling(self, analyzer):
        for _ in range(100):
            analyzer.process_frame([TURNED_HEAD])
        assert analyzer.suspicion == Config.SUSPICION_CEILING

    def test_decays_to_zero(self, analyzer, face):
        for _ in range(5):
            analyzer.process_frame([TURNED_HEAD])
        assert analyzer.suspicion == 10

        analyzer.process_frame([face])
        assert analyzer.suspicion == 7

        for _ in range(10):
            analyzer.process_frame([face])
        assert analyzer.suspicion == 0

    def test_no_face_leaves_counter_unchanged(self, analyzer):
        for _ in range(3):
            analyzer.process_frame([TURNED_HEAD])

        for _ in range(5):
            result = analyzer.process_frame([])
            assert result.suspicion == 6
        assert analyzer.suspicion == 6

    def test_counter_stays_in_bounds(self, analyzer, face):
        rng = random.Random(1234)
        frames = [[face], [TURNED_HEAD], [LOOKING_RIGHT], [], [face, face]]

        for _ in range(500):
            result = analyzer.process_frame(rng.choice(frames))
            assert 0 <= result.suspicion <= Config.SUSPICION_CEILING

    def test_custom_thresholds(self, face):
        analyzer = VisualBehaviorAnalyzer(VisualConfig(caution_threshold=1, warning_threshold=3))
        analyzer.calibrate(face)

        assert analyzer.process_frame([TURNED_HEAD]).warning_level is VisualWarningLevel.CAUTION
        assert analyzer.process_frame([TURNED_HEAD]).warning_level is VisualWarningLevel.WARNING

    def test_stop_detection_resets_counter(self, analyzer):
        analyzer.process_frame([TURNED_HEAD])
        analyzer.stop_detection()
        analyzer.stop_detection()

        assert analyzer.suspicion == 0
        assert analyzer.is_detecting is False


class TestVisualConfig:
    """Test configuration validation"""

    def test_thresholds_must_be_ordered(self):
        with pytest.raises(ValueError):
            VisualConfig(caution_threshold=30, warning_threshold=15)

    def test_steps_must_be_positive(self):
        with pytest.raises(ValueError):
            VisualConfig(step_down=0)

    @pytest.mark.parametrize("name", [
        "tolerance_h", "tolerance_v", "tolerance_eye_opening", "tolerance_head_yaw",
    ])
    def test_tolerances_must_be_positive(self, name):
        with pytest.raises(ValueError, match=name):
            VisualConfig(**{name: 0})

    def test_rejected_set_config_changes_nothing(self, analyzer, face):
        calibration = analyzer.calibration

        with pytest.raises(ValueError):
            analyzer.set_config(tolerance_h=0, enable_gaze_detection=False)

        assert analyzer.config.tolerance_h == Config.TOLERANCE_H
        assert analyzer.config.enable_gaze_detection is True
        assert analyzer.calibration is calibration

        recalibrated = analyzer.calibrate(face)
        assert recalibrated.tolerance_h == Config.TOLERANCE_H

    def test_rejected_set_config_leaves_analyzer_usable(self, analyzer):
        with pytest.raises(ValueError):
            analyzer.set_config(tolerance_head_yaw=-1.0)

        calibration = analyzer.calibrate(make_face())
        assert calibration.tolerance_head_yaw == Config.TOLERANCE_HEAD_YAW
        assert analyzer.process_frame([TURNED_HEAD]).warnings == ["Head turned RIGHT"]

        with pytest.raises(CalibrationError):
            analyzer.calibrate(make_face(eye_open_scale=0.0))

    def test_set_config(self, analyzer):
        analyzer.set_config(enable_head_movement=False, tolerance_head_yaw=45.0)

        assert analyzer.config.enable_head_movement is False
        assert analyzer.calibration.tolerance_head_yaw == 45.0
        assert analyzer.calibration.is_calibrated is True

    def test_set_config_widened_tolerance_silences_warning(self, analyzer):
        analyzer.set_config(tolerance_head_yaw=45.0)
        assert analyzer.process_frame([TURNED_HEAD]).warnings == []

    def test_set_config_unknown_option(self, analyzer):
        with pytest.raises(TypeError, match="bogus"):
            analyzer.set_config(bogus=True)
