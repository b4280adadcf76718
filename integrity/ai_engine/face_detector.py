"""
Face Detector Module using MediaPipe Face Landmarker
Extracts 478 facial landmarks (face mesh + irises) for every face in a frame
Compatible with MediaPipe 0.10+
"""

import os
import urllib.request
from typing import List, Optional, Tuple

import cv2
import numpy as np

from integrity.errors import InitializationError
from shared.config import settings
from shared.constants import Config
from shared.logging_config import get_vision_logger

logger = get_vision_logger()

FaceLandmarkList = List[Tuple[float, float, float]]


class FaceDetector:
    """
    Landmark inference backend: detects up to max_num_faces faces per frame
    using MediaPipe Face Landmarker in VIDEO mode
    """

    def __init__(
        self,
        max_num_faces: Optional[int] = None,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        model_path: Optional[str] = None
    ):
        """
        Initialize MediaPipe Face Landmarker

        Args:
            max_num_faces: Maximum number of faces to detect (extra faces flag multi-person presence)
            min_detection_confidence: Minimum confidence for face detection
            min_tracking_confidence: Minimum confidence for landmark tracking
            model_path: Path to face_landmarker.task model file (downloaded if missing)

        Raises:
            InitializationError: if the model or the landmarker cannot be loaded
        """
        self.max_num_faces = max_num_faces or settings.MAX_FACES
        self.model_path = self._ensure_model(model_path or settings.MODEL_PATH)

        try:
            from mediapipe.tasks import python
            from mediapipe.tasks.python import vision

            base_options = python.BaseOptions(model_asset_path=self.model_path)
            options = vision.FaceLandmarkerOptions(
                base_options=base_options,
                running_mode=vision.RunningMode.VIDEO,
                num_faces=self.max_num_faces,
                min_face_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
                output_face_blendshapes=False,
                output_facial_transformation_matrixes=False
            )
            self.detector = vision.FaceLandmarker.create_from_options(options)
        except Exception as e:
            raise InitializationError(f"Failed to initialize Face Landmarker: {e}") from e

        self._last_timestamp_ms = -1
        logger.info(f"Face Landmarker initialized (max faces: {self.max_num_faces})")

    @staticmethod
    def _ensure_model(model_path: str) -> str:
        """
        Download the face landmarker model if it is not on disk

        Returns:
            Path to model file
        """
        if os.path.exists(model_path):
            return model_path

        logger.info(f"Downloading face landmarker model to {model_path}")
        try:
            os.makedirs(os.path.dirname(os.path.abspath(model_path)), exist_ok=True)
            urllib.request.urlretrieve(Config.MODEL_URL, model_path)
        except Exception as e:
            raise InitializationError(f"Failed to download model: {e}") from e

        return model_path

    def _next_timestamp(self, timestamp_ms: Optional[int]) -> int:
        # VIDEO mode rejects timestamps that do not strictly increase
        if timestamp_ms is None:
            timestamp_ms = self._last_timestamp_ms + 1000 // Config.FPS_TARGET
        timestamp_ms = max(int(timestamp_ms), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms
        return timestamp_ms

    def detect(self, frame: np.ndarray, timestamp_ms: Optional[int] = None) -> List[FaceLandmarkList]:
        """
        Detect every face in a frame and extract its landmarks

        Args:
            frame: BGR image from OpenCV (numpy array)
            timestamp_ms: Frame timestamp; generated when omitted

        Returns:
            One list of (x, y, z) tuples per face, empty when no face is visible.
            Coordinates are normalized (0.0 to 1.0)
        """
        import mediapipe as mp

        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb_frame)

        result = self.detector.detect_for_video(mp_image, self._next_timestamp(timestamp_ms))

        return [
            [(landmark.x, landmark.y, landmark.z) for landmark in face_landmarks]
            for face_landmarks in (result.face_landmarks or [])
        ]

    def release(self):
        """Release MediaPipe resources"""
        self.detector.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
