import os
import sys
import tempfile

import pytest

# Keep test logs out of the project tree
os.environ.setdefault("INTEGRITY_LOG_DIR", tempfile.mkdtemp(prefix="integrity-test-logs-"))

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from integrity.scheduling import ManualScheduler
from integrity.signals import SignalBridge
from shared.constants import FaceLandmarks


# Eye boxes of the synthetic face: 0.06 wide, 0.02 tall, centered on y=0.40
LEFT_EYE_X = (0.40, 0.46)
RIGHT_EYE_X = (0.54, 0.60)
EYE_Y = 0.40
EYE_HALF_HEIGHT = 0.01
NOSE_X = 0.47   # midpoint of the outer corners (33 and 362)


def make_face(
    iris_dx: float = 0.0,
    iris_dy: float = 0.0,
    nose_dx: float = 0.0,
    eye_open_scale: float = 1.0,
    count: int = FaceLandmarks.TOTAL_COUNT
):
    """
    Build a synthetic 478-point landmark set looking straight ahead

    Args:
        iris_dx: Horizontal iris shift (0.03 moves the iris to the eye corner)
        iris_dy: Vertical iris shift
        nose_dx: Horizontal nose shift (0.12 is roughly a 19 degree head turn)
        eye_open_scale: Multiplier on the eyelid gap
        count: Number of landmarks to produce
    """
    points = [(0.5, 0.5, 0.0)] * count

    def put(index, x, y):
        if index < count:
            points[index] = (x, y, 0.0)

    half = EYE_HALF_HEIGHT * eye_open_scale

    left_center = sum(LEFT_EYE_X) / 2
    put(FaceLandmarks.LEFT_EYE_OUTER, LEFT_EYE_X[0], EYE_Y)
    put(FaceLandmarks.LEFT_EYE_INNER, LEFT_EYE_X[1], EYE_Y)
    put(FaceLandmarks.LEFT_EYE_UPPER, left_center, EYE_Y - half)
    put(FaceLandmarks.LEFT_EYE_LOWER, left_center, EYE_Y + half)
    for index in FaceLandmarks.LEFT_IRIS:
        put(index, left_center + iris_dx, EYE_Y + iris_dy)

    right_center = sum(RIGHT_EYE_X) / 2
    put(FaceLandmarks.RIGHT_EYE_OUTER, RIGHT_EYE_X[0], EYE_Y)
    put(FaceLandmarks.RIGHT_EYE_INNER, RIGHT_EYE_X[1], EYE_Y)
    put(FaceLandmarks.RIGHT_EYE_UPPER, right_center, EYE_Y - half)
    put(FaceLandmarks.RIGHT_EYE_LOWER, right_center, EYE_Y + half)
    for index in FaceLandmarks.RIGHT_IRIS:
        put(index, right_center + iris_dx, EYE_Y + iris_dy)

    put(FaceLandmarks.NOSE_TIP, NOSE_X + nose_dx, 0.45)
    put(FaceLandmarks.CHIN, NOSE_X, 0.60)

    return points


@pytest.fixture
def face():
    return make_face()


@pytest.fixture
def scheduler():
    return ManualScheduler(start=1_700_000_000.0)


@pytest.fixture
def bridge():
    return SignalBridge(inner_size=(1920, 1080))
