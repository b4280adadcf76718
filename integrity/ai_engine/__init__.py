"""
AI Engine Module
Landmark geometry, visual behavior analysis and the frame detection loop
"""

from .analyzer import VisualBehaviorAnalyzer, VisualConfig
from .detection_loop import DetectionLoop
from .face_detector import FaceDetector
from .snapshot import SnapshotCapture
from .geometry import (
    compute_gaze,
    compute_head_pose,
    compute_head_yaw,
    compute_eye_opening,
    is_looking_up,
    gaze_out_of_bounds,
)

__all__ = [
    'VisualBehaviorAnalyzer',
    'VisualConfig',
    'DetectionLoop',
    'FaceDetector',
    'SnapshotCapture',
    'compute_gaze',
    'compute_head_pose',
    'compute_head_yaw',
    'compute_eye_opening',
    'is_looking_up',
    'gaze_out_of_bounds',
]
