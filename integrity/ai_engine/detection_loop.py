"""
Detection Loop Module
Pumps video frames through the landmark backend and the visual analyzer.

At most one inference call is in flight at a time; frames arriving while
one is outstanding are dropped. Each call carries a timeout, after which
the frame is treated as failed.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional

from integrity.errors import DetectionError
from integrity.models import DetectionFrame
from integrity.scheduling import ScheduledHandle, Scheduler, TimerScheduler
from shared.config import settings
from shared.logging_config import get_vision_logger

logger = get_vision_logger()


class DetectionLoop:
    """
    Explicit frame loop driven by an injected scheduler

    Args:
        analyzer: VisualBehaviorAnalyzer receiving the detected faces
        detector: Landmark backend exposing detect(frame, timestamp_ms)
        frame_source: Callable returning the next video frame, or None if no new frame
        on_detection: Called with every DetectionFrame
        on_error: Called with the DetectionError of every failed frame
        scheduler: Scheduler driving ticks (defaults to real timers)
        timeout: Seconds allowed per inference call
        fps: Tick rate when started
    """

    def __init__(
        self,
        analyzer,
        detector,
        frame_source: Callable[[], Any],
        on_detection: Callable[[DetectionFrame], None],
        on_error: Optional[Callable[[DetectionError], None]] = None,
        scheduler: Optional[Scheduler] = None,
        timeout: Optional[float] = None,
        fps: Optional[int] = None
    ):
        self.analyzer = analyzer
        self.detector = detector
        self.frame_source = frame_source
        self.on_detection = on_detection
        self.on_error = on_error
        self.scheduler = scheduler or TimerScheduler()
        self.timeout = settings.INFERENCE_TIMEOUT if timeout is None else timeout
        self.fps = fps or settings.FPS_TARGET

        self.is_running = False
        self.is_paused = False
        self.frames_processed = 0
        self.dropped_frames = 0
        self.failed_frames = 0

        self._executor: Optional[ThreadPoolExecutor] = None
        self._in_flight: Optional[Future] = None
        self._handle: Optional[ScheduledHandle] = None
        self._lock = threading.Lock()

    # ==================== LIFECYCLE ====================

    def start(self):
        """Schedule ticks at the configured frame rate"""
        if self.is_running:
            return
        self.is_running = True
        self.is_paused = False
        self._handle = self.scheduler.call_every(1.0 / self.fps, self._tick)
        logger.info(f"Detection loop started at {self.fps} FPS (timeout {self.timeout}s)")

    def pause(self):
        self.is_paused = True

    def resume(self):
        self.is_paused = False

    def stop(self):
        """Cancel scheduled ticks and release the inference worker; idempotent"""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self.is_running:
            logger.info(
                f"Detection loop stopped: {self.frames_processed} processed, "
                f"{self.dropped_frames} dropped, {self.failed_frames} failed"
            )
        self.is_running = False
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False)
                self._executor = None
                self._in_flight = None

    def _tick(self):
        if self.is_paused:
            return
        self.step()

    # ==================== FRAME PROCESSING ====================

    def step(self) -> Optional[DetectionFrame]:
        """
        Pull one frame from the source and process it synchronously

        Returns:
            DetectionFrame, or None when there was no frame, the frame was
            dropped, or it failed
        """
        frame = self.frame_source()
        if frame is None:
            return None
        return self.submit(frame)

    def submit(self, frame: Any) -> Optional[DetectionFrame]:
        """Run inference and analysis for one frame, dropping it if inference is busy"""
        with self._lock:
            if self._in_flight is not None and not self._in_flight.done():
                self.dropped_frames += 1
                logger.debug("Inference still in flight, frame dropped")
                return None
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="landmark-inference")
            timestamp_ms = int(self.scheduler.time() * 1000)
            try:
                future = self._executor.submit(self.detector.detect, frame, timestamp_ms)
            except RuntimeError as e:
                # Executor already shut down
                future = None
                error = DetectionError(f"Landmark inference unavailable: {e}")
            else:
                self._in_flight = future

        if future is None:
            self._fail(error)
            return None

        try:
            faces = future.result(timeout=self.timeout)
            result = self.analyzer.process_frame(faces if faces is not None else [])
        except FutureTimeoutError:
            self._fail(DetectionError(f"Landmark inference exceeded {self.timeout}s"))
            return None
        except DetectionError as e:
            self._fail(e)
            return None
        except Exception as e:
            self._fail(DetectionError(f"Landmark inference failed: {e}"))
            return None

        self.frames_processed += 1
        self.on_detection(result)
        return result

    def _fail(self, error: DetectionError):
        self.failed_frames += 1
        logger.warning(f"Frame skipped: {error}")
        if self.on_error:
            try:
                self.on_error(error)
            except Exception:
                logger.exception("Detection error callback failed")
