"""
Snapshot Capture Module
Captures still images of the candidate at calibration and warning moments
"""

import base64
import os
from datetime import datetime
from typing import Optional

import cv2
import numpy as np

from shared.constants import Config
from shared.logging_config import get_vision_logger

logger = get_vision_logger()

DATA_URL_PREFIX = "data:image/jpeg;base64,"


class SnapshotCapture:
    """
    Encodes webcam frames as JPEG data URLs

    A bound instance can serve as the environment monitor's snapshot
    provider through provider().
    """

    def __init__(
        self,
        save_dir: Optional[str] = None,
        quality: int = Config.SNAPSHOT_JPEG_QUALITY,
        annotate: bool = False
    ):
        """
        Args:
            save_dir: Directory to save local copies (optional)
            quality: JPEG quality (0-100)
            annotate: Draw the label and timestamp onto captured frames
        """
        self.save_dir = save_dir
        self.quality = quality
        self.annotate = annotate
        self.latest_frame: Optional[np.ndarray] = None

        if save_dir:
            os.makedirs(save_dir, exist_ok=True)

    def update(self, frame: np.ndarray):
        """Remember the most recent video frame for provider()"""
        self.latest_frame = frame

    def capture(self, frame: np.ndarray, label: Optional[str] = None) -> str:
        """
        Capture a frame as a JPEG data URL

        Args:
            frame: OpenCV frame (BGR numpy array)
            label: Warning or violation name, used for annotation and file name

        Returns:
            "data:image/jpeg;base64,..." string
        """
        if frame is None or frame.size == 0:
            raise ValueError("Cannot capture an empty frame")

        timestamp = datetime.now()
        image = self._annotate_frame(frame, label, timestamp) if self.annotate and label else frame

        success, buffer = cv2.imencode('.jpg', image, [cv2.IMWRITE_JPEG_QUALITY, self.quality])
        if not success:
            raise RuntimeError("Failed to encode frame")

        if self.save_dir:
            filename = f"{timestamp.strftime('%Y%m%d_%H%M%S_%f')}_{label or 'snapshot'}.jpg"
            path = os.path.join(self.save_dir, filename)
            with open(path, 'wb') as f:
                f.write(buffer.tobytes())
            logger.debug(f"Snapshot saved to {path}")

        return DATA_URL_PREFIX + base64.b64encode(buffer).decode('utf-8')

    def provider(self) -> Optional[str]:
        """Capture the latest frame, or None if no frame was seen yet"""
        if self.latest_frame is None:
            return None
        return self.capture(self.latest_frame)

    def _annotate_frame(self, frame: np.ndarray, label: str, timestamp: datetime) -> np.ndarray:
        """Add a header bar with the label and timestamp"""
        annotated = frame.copy()
        height, width = annotated.shape[:2]

        overlay = annotated.copy()
        cv2.rectangle(overlay, (0, 0), (width, 50), (0, 0, 0), -1)
        cv2.addWeighted(overlay, 0.7, annotated, 0.3, 0, annotated)

        cv2.putText(annotated, label, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 0, 255), 2)
        cv2.putText(
            annotated,
            timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            (max(width - 200, 0), 30),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.5,
            (255, 255, 255),
            1
        )
        return annotated

    @staticmethod
    def decode_data_url(data_url: str) -> np.ndarray:
        """Decode a data URL (or bare base64 string) back to an OpenCV frame"""
        if data_url.startswith("data:"):
            data_url = data_url.split(",", 1)[1]
        nparr = np.frombuffer(base64.b64decode(data_url), np.uint8)
        frame = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
        if frame is None:
            raise ValueError("Data URL does not hold a decodable image")
        return frame
