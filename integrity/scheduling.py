"""
Schedulers driving the detection loop, the devtools poll and the fullscreen retry

TimerScheduler runs callbacks on background threads in real time.
ManualScheduler keeps a virtual clock that only moves when advance() is
called, so timing-dependent behavior can be single-stepped deterministically.
"""

import heapq
import itertools
import threading
import time
from typing import Callable, List, Optional, Tuple

from shared.logging_config import get_scheduler_logger

logger = get_scheduler_logger()


class ScheduledHandle:
    """Handle for a scheduled callback"""

    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class Scheduler:
    """Interface shared by all schedulers"""

    def time(self) -> float:
        raise NotImplementedError

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledHandle:
        raise NotImplementedError

    def call_every(self, interval: float, callback: Callable[[], None]) -> ScheduledHandle:
        raise NotImplementedError


# ==================== REAL TIME ====================

class _TimerHandle(ScheduledHandle):
    def __init__(self, timer: threading.Timer):
        super().__init__()
        self._timer = timer

    def cancel(self):
        super().cancel()
        self._timer.cancel()


class _RepeatingHandle(ScheduledHandle):
    def __init__(self, stop_event: threading.Event):
        super().__init__()
        self._stop_event = stop_event

    def cancel(self):
        super().cancel()
        self._stop_event.set()


class TimerScheduler(Scheduler):
    """Wall-clock scheduler backed by daemon threads"""

    def time(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledHandle:
        timer = threading.Timer(delay, self._run_safely, args=(callback,))
        timer.daemon = True
        timer.start()
        return _TimerHandle(timer)

    def call_every(self, interval: float, callback: Callable[[], None]) -> ScheduledHandle:
        stop_event = threading.Event()

        def loop():
            # Next run starts only after the previous one returned
            while not stop_event.wait(interval):
                self._run_safely(callback)

        thread = threading.Thread(target=loop, daemon=True)
        thread.start()
        return _RepeatingHandle(stop_event)

    @staticmethod
    def _run_safely(callback: Callable[[], None]):
        try:
            callback()
        except Exception:
            logger.exception(f"Scheduled callback {callback!r} failed")


# ==================== VIRTUAL TIME ====================

class _ManualHandle(ScheduledHandle):
    def __init__(self, interval: Optional[float]):
        super().__init__()
        self.interval = interval


class ManualScheduler(Scheduler):
    """
    Scheduler with a virtual clock.

    Nothing runs until advance() is called; callbacks then run on the
    calling thread in due-time order.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: List[Tuple[float, int, _ManualHandle, Callable[[], None]]] = []
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def time(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledHandle:
        handle = _ManualHandle(interval=None)
        self._push(self._now + delay, handle, callback)
        return handle

    def call_every(self, interval: float, callback: Callable[[], None]) -> ScheduledHandle:
        if interval <= 0:
            raise ValueError("interval must be positive")
        handle = _ManualHandle(interval=interval)
        self._push(self._now + interval, handle, callback)
        return handle

    def _push(self, due: float, handle: _ManualHandle, callback: Callable[[], None]):
        with self._lock:
            heapq.heappush(self._queue, (due, next(self._counter), handle, callback))

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running every callback that falls due; returns how many ran"""
        target = self._now + seconds
        ran = 0
        while True:
            with self._lock:
                if not self._queue or self._queue[0][0] > target:
                    break
                due, _, handle, callback = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = due
            callback()
            ran += 1
            if handle.interval is not None and not handle.cancelled:
                self._push(due + handle.interval, handle, callback)
        self._now = target
        return ran

    @property
    def pending(self) -> int:
        """Number of scheduled, non-cancelled callbacks"""
        with self._lock:
            return sum(1 for entry in self._queue if not entry[2].cancelled)
