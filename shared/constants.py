"""
Shared Constants for the Proctoring Integrity Engine
Contains violation types, warning levels, landmark indices and configuration defaults
"""

from enum import Enum
from typing import Dict


# ==================== VISUAL DETECTOR ====================
class VisualWarningLevel(Enum):
    """Warning level produced by the Visual Behavior Analyzer"""
    OK = "ok"
    CAUTION = "caution"
    WARNING = "warning"


class HeadDirection(Enum):
    """Head turn direction relative to the calibrated baseline"""
    LEFT = "LEFT"
    RIGHT = "RIGHT"


class GazeConvention:
    """
    Maps gaze offsets from the calibrated center to direction labels.

    Iris positions are measured in image coordinates of a mirrored (selfie)
    camera, so a horizontal value below center means the candidate looks to
    their RIGHT. Vertical values below center are reported as DOWN.
    """
    H_BELOW_CENTER = "RIGHT"
    H_ABOVE_CENTER = "LEFT"
    V_BELOW_CENTER = "DOWN"
    V_ABOVE_CENTER = "UP"
    DIAGONAL_SEPARATOR = "-"


# ==================== ENVIRONMENT MONITOR ====================
class ViolationType(Enum):
    """Types of environment integrity violations"""
    TAB_SWITCH = "TAB_SWITCH"
    WINDOW_BLUR = "WINDOW_BLUR"
    FULLSCREEN_EXIT = "FULLSCREEN_EXIT"
    RIGHT_CLICK = "RIGHT_CLICK"
    DEV_TOOLS = "DEV_TOOLS"
    COPY_PASTE = "COPY_PASTE"
    WINDOW_RESIZE = "WINDOW_RESIZE"
    KEYBOARD_SHORTCUT = "KEYBOARD_SHORTCUT"


class Severity(Enum):
    """Violation severity"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EnvironmentWarningLevel(Enum):
    """Warning level produced by the Environment Integrity Monitor"""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MonitorState(Enum):
    """Lifecycle of an Environment Integrity Monitor"""
    IDLE = "idle"
    MONITORING = "monitoring"
    TERMINATED = "terminated"


class SignalName:
    """Browser/OS signal names delivered by a signal source"""
    VISIBILITY_CHANGE = "visibilitychange"
    BLUR = "blur"
    CONTEXT_MENU = "contextmenu"
    KEYDOWN = "keydown"
    COPY = "copy"
    CUT = "cut"
    PASTE = "paste"
    RESIZE = "resize"
    FULLSCREEN_CHANGE = "fullscreenchange"

    CLIPBOARD = (COPY, CUT, PASTE)


VIOLATION_SEVERITY: Dict[ViolationType, Severity] = {
    ViolationType.TAB_SWITCH: Severity.MEDIUM,
    ViolationType.WINDOW_BLUR: Severity.LOW,
    ViolationType.FULLSCREEN_EXIT: Severity.MEDIUM,
    ViolationType.RIGHT_CLICK: Severity.LOW,
    ViolationType.DEV_TOOLS: Severity.HIGH,
    ViolationType.COPY_PASTE: Severity.LOW,
    ViolationType.WINDOW_RESIZE: Severity.LOW,
    ViolationType.KEYBOARD_SHORTCUT: Severity.LOW,
}

# Per-type count at which the session is terminated
DEFAULT_VIOLATION_THRESHOLDS: Dict[ViolationType, int] = {
    ViolationType.TAB_SWITCH: 3,
    ViolationType.WINDOW_BLUR: 3,
    ViolationType.FULLSCREEN_EXIT: 2,
    ViolationType.RIGHT_CLICK: 5,
    ViolationType.DEV_TOOLS: 1,
    ViolationType.COPY_PASTE: 5,
    ViolationType.WINDOW_RESIZE: 3,
    ViolationType.KEYBOARD_SHORTCUT: 3,
}


# ==================== CONFIGURATION DEFAULTS ====================
class Config:
    """Default configuration values"""

    # Frame pump
    FPS_TARGET = 30
    INFERENCE_TIMEOUT = 1.0     # seconds per landmark inference call
    MAX_NUM_FACES = 3

    # Calibration tolerances
    TOLERANCE_H = 0.15
    TOLERANCE_V = 0.15
    TOLERANCE_EYE_OPENING = 0.25
    TOLERANCE_HEAD_YAW = 15.0   # degrees

    # Uncalibrated gaze center
    DEFAULT_CENTER_H = 0.5
    DEFAULT_CENTER_V = 0.5

    # Geometry
    GEOMETRY_EPSILON = 1e-6
    NOSE_YAW_RANGE = 45.0       # degrees at a full inter-eye nose offset

    # Suspicion counter
    SUSPICION_STEP_UP = 2
    SUSPICION_STEP_DOWN = 3
    SUSPICION_CEILING = 60
    CAUTION_THRESHOLD = 15
    WARNING_THRESHOLD = 30

    # Environment monitor
    MAX_VIOLATIONS = 10
    WARNING_THRESHOLD_LOW = 2
    WARNING_THRESHOLD_MEDIUM = 5
    WARNING_THRESHOLD_HIGH = 8
    RESIZE_THRESHOLD_PX = 50
    DEV_TOOLS_GAP_PX = 160
    DEV_TOOLS_HEIGHT_GAP_PX = 150   # Firefox docks with a smaller gap
    DEV_TOOLS_POLL_INTERVAL = 1.0   # seconds
    FULLSCREEN_RETRY_DELAY = 1.0    # seconds

    # Snapshots
    SNAPSHOT_JPEG_QUALITY = 80

    # Model
    MODEL_URL = (
        "https://storage.googleapis.com/mediapipe-models/face_landmarker/"
        "face_landmarker/float16/1/face_landmarker.task"
    )
    MODEL_PATH = "models/face_landmarker.task"


# ==================== FACIAL LANDMARKS INDICES ====================
class FaceLandmarks:
    """MediaPipe Face Mesh landmark indices used by the visual detector"""

    LEFT_EYE_OUTER = 33
    LEFT_EYE_INNER = 133
    LEFT_EYE_UPPER = 159
    LEFT_EYE_LOWER = 145
    LEFT_IRIS = [468, 469, 470, 471]

    RIGHT_EYE_OUTER = 362
    RIGHT_EYE_INNER = 263
    RIGHT_EYE_UPPER = 386
    RIGHT_EYE_LOWER = 374
    RIGHT_IRIS = [473, 474, 475, 476]

    NOSE_TIP = 1
    CHIN = 152

    # Smallest landmark set covering every index above
    REQUIRED_COUNT = 477
    # Full Face Landmarker output (face mesh + irises)
    TOTAL_COUNT = 478


# ==================== MESSAGES ====================
NO_FACE_MESSAGE = "No face detected"
LOOKING_UP_MESSAGE = "Looking UP (eyelid)"

VIOLATION_MESSAGES: Dict[ViolationType, str] = {
    ViolationType.TAB_SWITCH: "Tab switching detected",
    ViolationType.WINDOW_BLUR: "Window lost focus",
    ViolationType.FULLSCREEN_EXIT: "Exited fullscreen mode",
    ViolationType.RIGHT_CLICK: "Right-click attempted",
    ViolationType.DEV_TOOLS: "Developer tools detected",
    ViolationType.COPY_PASTE: "Copy/paste attempted",
    ViolationType.WINDOW_RESIZE: "Window resized",
    ViolationType.KEYBOARD_SHORTCUT: "Forbidden shortcut used",
}
