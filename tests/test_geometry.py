"""
Geometry Tests
Tests for gaze, head yaw, eye opening and gaze bounds
"""

import math

import pytest

from conftest import make_face
from integrity.ai_engine import geometry
from integrity.models import Calibration, GazeSample
from shared.constants import FaceLandmarks, GazeConvention, HeadDirection


@pytest.fixture
def calibrated():
    """Calibration centered at 0.5/0.5 with a straight-ahead head"""
    return Calibration(baseline_eye_opening=0.02, baseline_head_yaw=0.0, is_calibrated=True)


class TestComputeGaze:
    """Test iris position normalization"""

    def test_centered_iris(self, face):
        gaze = geometry.compute_gaze(face)

        assert gaze.left_h == pytest.approx(0.5)
        assert gaze.right_h == pytest.approx(0.5)
        assert gaze.avg_h == pytest.approx(0.5)
        assert gaze.avg_v == pytest.approx(0.5)

    def test_iris_at_outer_corner(self):
        gaze = geometry.compute_gaze(make_face(iris_dx=-0.03))
        assert gaze.avg_h == pytest.approx(0.0, abs=1e-9)

    def test_vertical_shift(self):
        gaze = geometry.compute_gaze(make_face(iris_dy=0.005))
        assert gaze.avg_v == pytest.approx(0.75)

    def test_degenerate_eye_box_does_not_divide_by_zero(self):
        """Collapsed eyes are floored to epsilon instead of raising"""
        face = make_face(eye_open_scale=0.0)
        gaze = geometry.compute_gaze(face)

        assert all(math.isfinite(v) for v in (gaze.left_v, gaze.right_v, gaze.avg_h, gaze.avg_v))

    def test_deterministic(self, face):
        assert geometry.compute_gaze(face) == geometry.compute_gaze(list(face))


class TestHeadPose:
    """Test yaw estimation and baseline comparison"""

    def test_straight_head_has_zero_yaw(self, face):
        assert geometry.compute_head_yaw(face) == pytest.approx(0.0, abs=1e-9)

    def test_uncalibrated_never_moving(self):
        pose = geometry.compute_head_pose(make_face(nose_dx=0.12), Calibration())

        assert pose.is_moving is False
        assert pose.direction is None
        assert pose.angle_degrees > 15

    def test_turn_right(self, calibrated):
        pose = geometry.compute_head_pose(make_face(nose_dx=0.12), calibrated)

        assert pose.is_moving is True
        assert pose.direction is HeadDirection.RIGHT

    def test_turn_left(self, calibrated):
        pose = geometry.compute_head_pose(make_face(nose_dx=-0.12), calibrated)

        assert pose.is_moving is True
        assert pose.direction is HeadDirection.LEFT

    def test_small_turn_within_tolerance(self, calibrated):
        pose = geometry.compute_head_pose(make_face(nose_dx=0.03), calibrated)

        assert pose.is_moving is False
        assert pose.direction is None

    def test_blends_eye_line_and_nose(self):
        """A pure nose offset of one inter-eye width contributes half of 45 degrees"""
        face = make_face(nose_dx=0.14)
        assert geometry.compute_head_yaw(face) == pytest.approx(22.5)


class TestEyeOpening:
    """Test eyelid gap and the looking-up heuristic"""

    def test_eye_opening(self, face):
        assert geometry.compute_eye_opening(face) == pytest.approx(0.02)

    def test_looking_up_requires_calibration(self):
        assert geometry.is_looking_up(make_face(eye_open_scale=2.0), Calibration()) is False

    def test_looking_up_with_zero_baseline(self):
        calibration = Calibration(baseline_eye_opening=0.0, is_calibrated=True)
        assert geometry.is_looking_up(make_face(eye_open_scale=2.0), calibration) is False

    def test_wide_eyes_flag_looking_up(self, calibrated):
        assert geometry.is_looking_up(make_face(eye_open_scale=1.5), calibrated) is True

    def test_normal_eyes_not_looking_up(self, calibrated):
        assert geometry.is_looking_up(make_face(eye_open_scale=1.2), calibrated) is False


class TestGazeOutOfBounds:
    """Test direction labelling and the sign convention"""

    def test_sign_convention_constants(self):
        assert GazeConvention.H_BELOW_CENTER == "RIGHT"
        assert GazeConvention.H_ABOVE_CENTER == "LEFT"
        assert GazeConvention.V_BELOW_CENTER == "DOWN"
        assert GazeConvention.V_ABOVE_CENTER == "UP"

    def test_uncalibrated_reports_nothing(self):
        gaze = GazeSample(avg_h=0.0, avg_v=0.0)
        assert geometry.gaze_out_of_bounds(gaze, Calibration()) == []

    def test_inside_bounds(self, calibrated):
        gaze = GazeSample(avg_h=0.55, avg_v=0.45)
        assert geometry.gaze_out_of_bounds(gaze, calibrated) == []

    def test_horizontal_only_is_not_diagonal(self, calibrated):
        """avg_h two tolerances below center, avg_v at center -> RIGHT only"""
        gaze = GazeSample(
            avg_h=calibrated.center_gaze_h - 2 * calibrated.tolerance_h,
            avg_v=calibrated.center_gaze_v
        )
        assert geometry.gaze_out_of_bounds(gaze, calibrated) == ["RIGHT"]

    def test_horizontal_above_center(self, calibrated):
        gaze = GazeSample(avg_h=0.9, avg_v=0.5)
        assert geometry.gaze_out_of_bounds(gaze, calibrated) == ["LEFT"]

    def test_vertical_only(self, calibrated):
        assert geometry.gaze_out_of_bounds(GazeSample(avg_h=0.5, avg_v=0.1), calibrated) == ["DOWN"]
        assert geometry.gaze_out_of_bounds(GazeSample(avg_h=0.5, avg_v=0.9), calibrated) == ["UP"]

    @pytest.mark.parametrize("avg_h, avg_v, expected", [
        (0.1, 0.1, "RIGHT-DOWN"),
        (0.9, 0.1, "LEFT-DOWN"),
        (0.1, 0.9, "RIGHT-UP"),
        (0.9, 0.9, "LEFT-UP"),
    ])
    def test_diagonals_take_priority(self, calibrated, avg_h, avg_v, expected):
        gaze = GazeSample(avg_h=avg_h, avg_v=avg_v)
        assert geometry.gaze_out_of_bounds(gaze, calibrated) == [expected]


class TestValidateLandmarks:
    """Test landmark set validation"""

    def test_valid_face(self, face):
        geometry.validate_landmarks(face)

    def test_empty(self):
        with pytest.raises(ValueError, match="empty"):
            geometry.validate_landmarks([])

    def test_too_short(self):
        with pytest.raises(ValueError, match="at least"):
            geometry.validate_landmarks(make_face(count=FaceLandmarks.REQUIRED_COUNT - 1))

    def test_non_finite(self, face):
        face[FaceLandmarks.NOSE_TIP] = (float("nan"), 0.5, 0.0)
        with pytest.raises(ValueError, match="non-finite"):
            geometry.validate_landmarks(face)

    def test_malformed_point(self, face):
        face[10] = (0.5,)
        with pytest.raises(ValueError, match="malformed"):
            geometry.validate_landmarks(face)
