"""
Publish/subscribe registry used for violation and termination observers
"""

import logging
import threading
from typing import Callable, List, Optional

from shared.logging_config import get_environment_logger


class Subscription:
    """Unsubscribe token returned by ObserverRegistry.subscribe()"""

    def __init__(self, registry: "ObserverRegistry", callback: Callable):
        self._registry = registry
        self._callback = callback
        self.active = True

    def unsubscribe(self):
        """Remove the callback; safe to call more than once"""
        if self.active:
            self._registry._remove(self._callback)
            self.active = False

    def __call__(self):
        self.unsubscribe()


class ObserverRegistry:
    """
    Ordered list of callbacks invoked synchronously on publish().

    Callbacks run in registration order. A failing callback is logged and
    does not prevent the remaining callbacks from running.
    """

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self._logger = logger or get_environment_logger()
        self._callbacks: List[Callable] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable) -> Subscription:
        with self._lock:
            self._callbacks.append(callback)
        return Subscription(self, callback)

    def _remove(self, callback: Callable):
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

    def publish(self, *args) -> int:
        """Invoke every callback; returns how many were called"""
        with self._lock:
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback(*args)
            except Exception:
                self._logger.exception(f"{self.name} observer {callback!r} failed")
        return len(callbacks)

    def __len__(self) -> int:
        with self._lock:
            return len(self._callbacks)
