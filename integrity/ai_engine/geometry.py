"""
Geometry Module
Calculates eye gaze, head yaw and eye opening from facial landmarks
for behavior detection. All functions are pure and deterministic.
"""

from typing import List, Sequence, Tuple

import numpy as np

from integrity.models import Calibration, GazeSample, HeadPose, LandmarkSet
from shared.constants import Config, FaceLandmarks, GazeConvention, HeadDirection


def validate_landmarks(landmarks: LandmarkSet):
    """
    Check that a landmark set can be analyzed

    Raises:
        ValueError: if the set is empty, too short, or holds non-finite points
    """
    if landmarks is None or len(landmarks) == 0:
        raise ValueError("landmark set is empty")

    if len(landmarks) < FaceLandmarks.REQUIRED_COUNT:
        raise ValueError(
            f"landmark set has {len(landmarks)} points, "
            f"at least {FaceLandmarks.REQUIRED_COUNT} are required"
        )

    try:
        points = np.array([(p[0], p[1]) for p in landmarks], dtype=np.float64)
    except (IndexError, TypeError, ValueError) as e:
        raise ValueError(f"malformed landmark: {e}")

    if not np.all(np.isfinite(points)):
        raise ValueError("landmark set contains non-finite coordinates")


def _xy(landmarks: LandmarkSet, index: int) -> Tuple[float, float]:
    point = landmarks[index]
    return float(point[0]), float(point[1])


def get_center(landmarks: LandmarkSet, indices: Sequence[int]) -> Tuple[float, float]:
    """
    Calculate the mean point of several landmarks

    Args:
        landmarks: Full landmark set
        indices: Landmark indices to average

    Returns:
        (x, y) center
    """
    points = np.array([_xy(landmarks, i) for i in indices], dtype=np.float64)
    center = points.mean(axis=0)
    return float(center[0]), float(center[1])


def _normalized_iris(
    landmarks: LandmarkSet,
    iris: Sequence[int],
    outer: int,
    inner: int,
    upper: int,
    lower: int
) -> Tuple[float, float]:
    """Iris position inside one eye's box, 0..1 on each axis"""
    iris_x, iris_y = get_center(landmarks, iris)
    outer_x, _ = _xy(landmarks, outer)
    inner_x, _ = _xy(landmarks, inner)
    _, upper_y = _xy(landmarks, upper)
    _, lower_y = _xy(landmarks, lower)

    # Degenerate boxes (closed eye, collapsed mesh) are floored, never divided by zero
    width = max(abs(inner_x - outer_x), Config.GEOMETRY_EPSILON)
    height = max(abs(lower_y - upper_y), Config.GEOMETRY_EPSILON)

    return (iris_x - outer_x) / width, (iris_y - upper_y) / height


def compute_gaze(landmarks: LandmarkSet) -> GazeSample:
    """
    Calculate gaze as the iris center relative to each eye's bounding box

    Args:
        landmarks: Full landmark set (with iris points)

    Returns:
        GazeSample with per-eye and averaged positions
    """
    left_h, left_v = _normalized_iris(
        landmarks,
        FaceLandmarks.LEFT_IRIS,
        FaceLandmarks.LEFT_EYE_OUTER,
        FaceLandmarks.LEFT_EYE_INNER,
        FaceLandmarks.LEFT_EYE_UPPER,
        FaceLandmarks.LEFT_EYE_LOWER,
    )
    right_h, right_v = _normalized_iris(
        landmarks,
        FaceLandmarks.RIGHT_IRIS,
        FaceLandmarks.RIGHT_EYE_OUTER,
        FaceLandmarks.RIGHT_EYE_INNER,
        FaceLandmarks.RIGHT_EYE_UPPER,
        FaceLandmarks.RIGHT_EYE_LOWER,
    )

    return GazeSample(
        left_h=left_h,
        right_h=right_h,
        left_v=left_v,
        right_v=right_v,
        avg_h=(left_h + right_h) / 2,
        avg_v=(left_v + right_v) / 2,
    )


def compute_head_yaw(landmarks: LandmarkSet) -> float:
    """
    Estimate head yaw in degrees

    Blends the angle of the line between the outer eye corners with the nose
    tip's horizontal offset from the eye midpoint, normalized by the
    inter-eye distance and scaled to NOSE_YAW_RANGE degrees.
    """
    left_x, left_y = _xy(landmarks, FaceLandmarks.LEFT_EYE_OUTER)
    right_x, right_y = _xy(landmarks, FaceLandmarks.RIGHT_EYE_OUTER)
    nose_x, _ = _xy(landmarks, FaceLandmarks.NOSE_TIP)

    eye_line_yaw = float(np.degrees(np.arctan2(right_y - left_y, right_x - left_x)))

    eye_mid_x = (left_x + right_x) / 2
    face_width = max(abs(right_x - left_x), Config.GEOMETRY_EPSILON)
    nose_yaw = (nose_x - eye_mid_x) / face_width * Config.NOSE_YAW_RANGE

    return (eye_line_yaw + nose_yaw) / 2


def compute_head_pose(landmarks: LandmarkSet, calibration: Calibration) -> HeadPose:
    """
    Compare current head yaw against the calibrated baseline

    Returns:
        HeadPose; never moving while uncalibrated
    """
    angle = compute_head_yaw(landmarks)

    if not calibration.is_calibrated:
        return HeadPose(is_moving=False, direction=None, angle_degrees=angle)

    difference = angle - calibration.baseline_head_yaw
    is_moving = abs(difference) > calibration.tolerance_head_yaw

    direction = None
    if is_moving:
        direction = HeadDirection.LEFT if difference < 0 else HeadDirection.RIGHT

    return HeadPose(is_moving=is_moving, direction=direction, angle_degrees=angle)


def compute_eye_opening(landmarks: LandmarkSet) -> float:
    """Average vertical eyelid gap across both eyes"""
    _, left_upper = _xy(landmarks, FaceLandmarks.LEFT_EYE_UPPER)
    _, left_lower = _xy(landmarks, FaceLandmarks.LEFT_EYE_LOWER)
    _, right_upper = _xy(landmarks, FaceLandmarks.RIGHT_EYE_UPPER)
    _, right_lower = _xy(landmarks, FaceLandmarks.RIGHT_EYE_LOWER)

    return (abs(left_lower - left_upper) + abs(right_lower - right_upper)) / 2


def is_looking_up(landmarks: LandmarkSet, calibration: Calibration) -> bool:
    """
    Eyelid-based "looking up" heuristic

    Eyes open wider than baseline when the candidate raises their gaze. This
    is an approximate proxy, not a physiological measurement.
    """
    if not calibration.is_calibrated or calibration.baseline_eye_opening == 0:
        return False

    ratio = compute_eye_opening(landmarks) / calibration.baseline_eye_opening
    return ratio > 1 + calibration.tolerance_eye_opening


def gaze_out_of_bounds(gaze: GazeSample, calibration: Calibration) -> List[str]:
    """
    Label gaze directions outside the calibrated tolerance box

    A diagonal label (e.g. RIGHT-DOWN) wins when both axes are out at once;
    otherwise each axis contributes its own label, horizontal first.
    Label mapping follows GazeConvention.

    Returns:
        List of direction labels, empty when inside bounds or uncalibrated
    """
    if not calibration.is_calibrated:
        return []

    horizontal = None
    if gaze.avg_h < calibration.center_gaze_h - calibration.tolerance_h:
        horizontal = GazeConvention.H_BELOW_CENTER
    elif gaze.avg_h > calibration.center_gaze_h + calibration.tolerance_h:
        horizontal = GazeConvention.H_ABOVE_CENTER

    vertical = None
    if gaze.avg_v < calibration.center_gaze_v - calibration.tolerance_v:
        vertical = GazeConvention.V_BELOW_CENTER
    elif gaze.avg_v > calibration.center_gaze_v + calibration.tolerance_v:
        vertical = GazeConvention.V_ABOVE_CENTER

    if horizontal and vertical:
        return [f"{horizontal}{GazeConvention.DIAGONAL_SEPARATOR}{vertical}"]

    return [label for label in (horizontal, vertical) if label]
