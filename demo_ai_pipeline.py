"""
Visual Pipeline Demo
Webcam -> Face Landmarker -> Visual Behavior Analyzer
Press 'c' to calibrate while looking at the screen, 'q' to quit
"""

import sys

import cv2

from integrity.ai_engine import FaceDetector, SnapshotCapture, VisualBehaviorAnalyzer
from integrity.errors import CalibrationError, InitializationError
from shared.config import settings
from shared.constants import VisualWarningLevel

COLORS = {
    VisualWarningLevel.OK: (0, 255, 0),
    VisualWarningLevel.CAUTION: (0, 255, 255),
    VisualWarningLevel.WARNING: (0, 0, 255),
}


def main():
    print("=" * 70)
    print("Proctoring Integrity Engine - Visual Pipeline Demo")
    print("=" * 70)
    print(settings)

    cap = cv2.VideoCapture(settings.CAMERA_INDEX)
    if not cap.isOpened():
        print("ERROR: Cannot open webcam")
        return 1

    try:
        detector = FaceDetector()
    except InitializationError as e:
        print(f"ERROR: {e}")
        cap.release()
        return 1

    analyzer = VisualBehaviorAnalyzer()
    snapshots = SnapshotCapture()

    try:
        while True:
            ret, frame = cap.read()
            if not ret:
                break

            faces = detector.detect(frame)
            result = analyzer.process_frame(faces)

            status = "CALIBRATED" if analyzer.calibration.is_calibrated else "press 'c' to calibrate"
            cv2.putText(frame, f"{result.warning_level.value.upper()}  suspicion={result.suspicion}",
                        (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.7, COLORS[result.warning_level], 2)
            cv2.putText(frame, status, (10, 60), cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 255, 255), 1)
            for i, warning in enumerate(result.warnings):
                cv2.putText(frame, warning, (10, 90 + 25 * i),
                            cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 255), 2)

            cv2.imshow("Visual Pipeline Demo", frame)
            key = cv2.waitKey(1) & 0xFF

            if key == ord('q'):
                break
            if key == ord('c'):
                if not faces:
                    print("No face in view, cannot calibrate")
                    continue
                try:
                    analyzer.calibrate(faces[0], snapshots.capture(frame, "calibration"))
                except CalibrationError as e:
                    print(f"Calibration failed, try again: {e}")
    finally:
        analyzer.stop_detection()
        detector.release()
        cap.release()
        cv2.destroyAllWindows()

    return 0


if __name__ == "__main__":
    sys.exit(main())
