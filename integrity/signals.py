"""
Signal Source Module
Contract for the browser/OS signals watched by the environment monitor,
plus an in-process bridge a host feeds with events
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from integrity.errors import CapabilityError
from shared.constants import SignalName

Size = Tuple[int, int]


@dataclass
class SignalEvent:
    """A discrete browser/OS event"""
    name: str
    key: Optional[str] = None
    ctrl_key: bool = False
    shift_key: bool = False
    alt_key: bool = False
    meta_key: bool = False
    default_prevented: bool = False

    def prevent_default(self):
        """Ask the host to suppress the default action (menu, clipboard, shortcut)"""
        self.default_prevented = True

    def shortcut_string(self) -> str:
        """Human-readable combo, e.g. 'Ctrl+Shift+I'"""
        parts = []
        if self.ctrl_key:
            parts.append("Ctrl")
        if self.shift_key:
            parts.append("Shift")
        if self.alt_key:
            parts.append("Alt")
        if self.meta_key:
            parts.append("Meta")
        parts.append(self.key or "")
        return "+".join(parts)


SignalHandler = Callable[[SignalEvent], None]


class SignalSource(ABC):
    """What the environment monitor needs from its host surface"""

    @abstractmethod
    def add_listener(self, name: str, handler: SignalHandler):
        ...

    @abstractmethod
    def remove_listener(self, name: str, handler: SignalHandler):
        ...

    @abstractmethod
    def is_hidden(self) -> bool:
        ...

    @abstractmethod
    def has_focus(self) -> bool:
        ...

    @abstractmethod
    def is_fullscreen(self) -> bool:
        ...

    @abstractmethod
    def inner_size(self) -> Size:
        ...

    @abstractmethod
    def outer_size(self) -> Size:
        ...

    @abstractmethod
    def request_fullscreen(self, target=None):
        """Enter fullscreen; raises CapabilityError when refused"""

    @abstractmethod
    def exit_fullscreen(self):
        ...


class SignalBridge(SignalSource):
    """
    In-process signal source

    The host (a browser bridge, a desktop shell, a test) mirrors window
    state into the bridge and calls dispatch() for every event. Setters
    that correspond to real browser events dispatch them as well.
    """

    def __init__(
        self,
        inner_size: Size = (1920, 1080),
        outer_size: Optional[Size] = None,
        allow_fullscreen: bool = True
    ):
        self._inner = inner_size
        self._outer = outer_size or inner_size
        self._hidden = False
        self._focused = True
        self._fullscreen = False
        self.allow_fullscreen = allow_fullscreen
        self.fullscreen_requests = 0
        self._listeners: Dict[str, List[SignalHandler]] = {}
        self._lock = threading.Lock()

    # ==================== LISTENERS ====================

    def add_listener(self, name: str, handler: SignalHandler):
        with self._lock:
            self._listeners.setdefault(name, []).append(handler)

    def remove_listener(self, name: str, handler: SignalHandler):
        with self._lock:
            handlers = self._listeners.get(name, [])
            if handler in handlers:
                handlers.remove(handler)

    def listener_count(self, name: Optional[str] = None) -> int:
        with self._lock:
            if name is not None:
                return len(self._listeners.get(name, []))
            return sum(len(handlers) for handlers in self._listeners.values())

    def dispatch(self, name: str, **kwargs) -> SignalEvent:
        """Deliver an event to every listener; returns it so callers can check default_prevented"""
        event = SignalEvent(name=name, **kwargs)
        with self._lock:
            handlers = list(self._listeners.get(name, []))
        for handler in handlers:
            handler(event)
        return event

    # ==================== STATE ====================

    def is_hidden(self) -> bool:
        return self._hidden

    def has_focus(self) -> bool:
        return self._focused

    def is_fullscreen(self) -> bool:
        return self._fullscreen

    def inner_size(self) -> Size:
        return self._inner

    def outer_size(self) -> Size:
        return self._outer

    def set_hidden(self, hidden: bool):
        self._hidden = hidden
        self.dispatch(SignalName.VISIBILITY_CHANGE)

    def set_focus(self, focused: bool):
        self._focused = focused
        if not focused:
            self.dispatch(SignalName.BLUR)

    def resize(self, width: int, height: int, outer: Optional[Size] = None):
        self._inner = (width, height)
        self._outer = outer or (width, height)
        self.dispatch(SignalName.RESIZE)

    def set_outer_size(self, width: int, height: int):
        """Outer window size without a resize event (e.g. a docked panel opening)"""
        self._outer = (width, height)

    def press_key(self, key: str, ctrl: bool = False, shift: bool = False,
                  alt: bool = False, meta: bool = False) -> SignalEvent:
        return self.dispatch(
            SignalName.KEYDOWN, key=key, ctrl_key=ctrl, shift_key=shift, alt_key=alt, meta_key=meta
        )

    # ==================== FULLSCREEN ====================

    def request_fullscreen(self, target=None):
        self.fullscreen_requests += 1
        if not self.allow_fullscreen:
            raise CapabilityError("Fullscreen request refused by host")
        if not self._fullscreen:
            self._fullscreen = True
            self.dispatch(SignalName.FULLSCREEN_CHANGE)

    def exit_fullscreen(self):
        if self._fullscreen:
            self._fullscreen = False
            self.dispatch(SignalName.FULLSCREEN_CHANGE)
