"""
Environment Integrity Monitor
Watches browser/OS signals for attempts to leave the proctored surface,
records typed violations and terminates the session past configured limits
"""

import threading
import uuid
from dataclasses import dataclass, field, fields, replace
from typing import Callable, Dict, List, Optional

from integrity.errors import SessionTerminatedError
from integrity.models import EnvironmentState, Violation
from integrity.observers import ObserverRegistry, Subscription
from integrity.scheduling import ScheduledHandle, Scheduler, TimerScheduler
from integrity.signals import SignalEvent, SignalSource
from shared.constants import (
    Config,
    DEFAULT_VIOLATION_THRESHOLDS,
    EnvironmentWarningLevel,
    MonitorState,
    SignalName,
    VIOLATION_MESSAGES,
    VIOLATION_SEVERITY,
    ViolationType,
)
from shared.logging_config import get_environment_logger, get_violation_logger

logger = get_environment_logger()
violation_logger = get_violation_logger()


@dataclass(frozen=True)
class WarningThresholds:
    """Total violation counts at which the warning level escalates"""
    low: int = Config.WARNING_THRESHOLD_LOW
    medium: int = Config.WARNING_THRESHOLD_MEDIUM
    high: int = Config.WARNING_THRESHOLD_HIGH

    def __post_init__(self):
        if not 0 < self.low <= self.medium <= self.high:
            raise ValueError(f"Warning thresholds must satisfy 0 < low <= medium <= high, got {self}")

    def level_for(self, total: int) -> EnvironmentWarningLevel:
        if total >= self.high:
            return EnvironmentWarningLevel.HIGH
        if total >= self.medium:
            return EnvironmentWarningLevel.MEDIUM
        if total >= self.low:
            return EnvironmentWarningLevel.LOW
        return EnvironmentWarningLevel.NONE


@dataclass
class EnvironmentConfig:
    """
    Watchers, escalation thresholds and timings of the environment monitor

    violation_thresholds is merged over the defaults; a threshold of 0 or
    None disables the per-type termination check for that type.
    """
    enable_fullscreen: bool = True
    enable_tab_switch_detection: bool = True
    enable_window_blur_detection: bool = True
    enable_right_click_prevention: bool = True
    enable_dev_tools_prevention: bool = True
    enable_copy_paste_prevention: bool = True
    enable_resize_detection: bool = True

    max_violations: int = Config.MAX_VIOLATIONS
    violation_thresholds: Dict[ViolationType, Optional[int]] = field(default_factory=dict)
    warning_thresholds: WarningThresholds = field(default_factory=WarningThresholds)
    auto_terminate_on_max_violations: bool = True
    screenshot_on_violation: bool = True

    resize_threshold_px: int = Config.RESIZE_THRESHOLD_PX
    dev_tools_gap_px: int = Config.DEV_TOOLS_GAP_PX
    dev_tools_height_gap_px: int = Config.DEV_TOOLS_HEIGHT_GAP_PX
    dev_tools_poll_interval: float = Config.DEV_TOOLS_POLL_INTERVAL
    fullscreen_retry_delay: float = Config.FULLSCREEN_RETRY_DELAY

    def __post_init__(self):
        merged = dict(DEFAULT_VIOLATION_THRESHOLDS)
        merged.update(self.violation_thresholds)
        self.violation_thresholds = merged
        if self.max_violations <= 0:
            raise ValueError("max_violations must be positive")


@dataclass(frozen=True)
class KeyboardShortcut:
    """A forbidden key combo; None modifiers match either state"""
    key: str
    category: ViolationType
    ctrl: Optional[bool] = None
    shift: Optional[bool] = None
    alt: Optional[bool] = None
    meta: Optional[bool] = None

    def matches(self, event: SignalEvent) -> bool:
        if (event.key or "").upper() != self.key.upper():
            return False
        for wanted, actual in (
            (self.ctrl, event.ctrl_key),
            (self.shift, event.shift_key),
            (self.alt, event.alt_key),
            (self.meta, event.meta_key),
        ):
            if wanted is not None and wanted != actual:
                return False
        return True


_DEV = ViolationType.DEV_TOOLS
_CLIP = ViolationType.COPY_PASTE
_KEY = ViolationType.KEYBOARD_SHORTCUT

# First match wins, so the Ctrl+Shift developer combos precede plain Ctrl+C.
# Mac Cmd+Option+I/J/C open the same developer panels as Ctrl+Shift+I/J/C and
# are classified as DEV_TOOLS too, not as generic or clipboard shortcuts.
FORBIDDEN_SHORTCUTS = (
    # Developer tools
    KeyboardShortcut("F12", _DEV),
    KeyboardShortcut("I", _DEV, ctrl=True, shift=True),
    KeyboardShortcut("I", _DEV, meta=True, alt=True),
    KeyboardShortcut("J", _DEV, ctrl=True, shift=True),
    KeyboardShortcut("J", _DEV, meta=True, alt=True),
    KeyboardShortcut("C", _DEV, ctrl=True, shift=True),
    KeyboardShortcut("C", _DEV, meta=True, alt=True),
    # Clipboard
    KeyboardShortcut("C", _CLIP, ctrl=True),
    KeyboardShortcut("V", _CLIP, ctrl=True),
    KeyboardShortcut("X", _CLIP, ctrl=True),
    KeyboardShortcut("A", _CLIP, ctrl=True),
    KeyboardShortcut("C", _CLIP, meta=True),
    KeyboardShortcut("V", _CLIP, meta=True),
    KeyboardShortcut("X", _CLIP, meta=True),
    KeyboardShortcut("A", _CLIP, meta=True),
    # Browser
    KeyboardShortcut("U", _KEY, ctrl=True),
    KeyboardShortcut("S", _KEY, ctrl=True),
    KeyboardShortcut("P", _KEY, ctrl=True),
    KeyboardShortcut("F", _KEY, ctrl=True),
    KeyboardShortcut("H", _KEY, ctrl=True),
    KeyboardShortcut("R", _KEY, ctrl=True),
    KeyboardShortcut("F5", _KEY),
)


class EnvironmentIntegrityMonitor:
    """
    Session-scoped environment watcher

    Lifecycle: IDLE -> MONITORING -> TERMINATED, or back to IDLE via stop().
    Every state mutation and observer fan-out runs under one re-entrant
    lock, so watchers firing from different threads are serialized.
    """

    def __init__(
        self,
        signals: SignalSource,
        config: Optional[EnvironmentConfig] = None,
        scheduler: Optional[Scheduler] = None,
        snapshot_provider: Optional[Callable[[], Optional[str]]] = None
    ):
        """
        Args:
            signals: Host surface delivering browser/OS events
            config: Watchers and thresholds (defaults if omitted)
            scheduler: Drives the devtools poll and the fullscreen retry
            snapshot_provider: Returns a still image attached to each violation
        """
        self.signals = signals
        self.config = config or EnvironmentConfig()
        self.scheduler = scheduler or TimerScheduler()
        self.snapshot_provider = snapshot_provider

        self._lock = threading.RLock()
        self._violation_observers = ObserverRegistry("violation", logger)
        self._termination_observers = ObserverRegistry("termination", logger)
        self._level_observers = ObserverRegistry("warning level", logger)

        self._is_monitoring = False
        self._is_fullscreen = False
        self._violations: List[Violation] = []
        self._counts: Dict[ViolationType, int] = {}
        self._total = 0
        self._warning_level = EnvironmentWarningLevel.NONE
        self._is_terminated = False

        self._target = None
        self._window_size = None
        self._listeners: List[tuple] = []
        self._poll_handle: Optional[ScheduledHandle] = None
        self._retry_handles: List[ScheduledHandle] = []

    # ==================== CONFIGURATION & OBSERVERS ====================

    def configure(self, **overrides):
        """Replace config fields (takes effect for watchers on the next start())"""
        known = {f.name for f in fields(EnvironmentConfig)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown environment config option(s): {', '.join(sorted(unknown))}")
        with self._lock:
            self.config = replace(self.config, **overrides)

    def on_violation(self, callback: Callable[[Violation], None]) -> Subscription:
        return self._violation_observers.subscribe(callback)

    def on_termination(self, callback: Callable[[List[Violation]], None]) -> Subscription:
        return self._termination_observers.subscribe(callback)

    def on_warning_level_change(self, callback: Callable[[EnvironmentWarningLevel], None]) -> Subscription:
        """Called with the new level only when a violation or a reset changes it"""
        return self._level_observers.subscribe(callback)

    # ==================== LIFECYCLE ====================

    @property
    def state(self) -> MonitorState:
        if self._is_terminated:
            return MonitorState.TERMINATED
        if self._is_monitoring:
            return MonitorState.MONITORING
        return MonitorState.IDLE

    def start(self, target=None, config: Optional[EnvironmentConfig] = None):
        """
        Begin monitoring

        Args:
            target: Element/window handed to the host's fullscreen request
            config: Replaces the current config before watchers are registered

        Raises:
            SessionTerminatedError: if the session was terminated
        """
        with self._lock:
            if self._is_terminated:
                raise SessionTerminatedError(
                    "Session is terminated; call clear_violations() before monitoring again"
                )
            if self._is_monitoring:
                return

            if config is not None:
                self.config = config

            self._is_monitoring = True
            self._target = target

            if self.config.enable_fullscreen:
                self.enter_fullscreen()

            self._register_watchers()
            self._window_size = self.signals.inner_size()

        logger.info("Environment monitoring started")

    def stop(self):
        """Stop monitoring; safe from any state and idempotent"""
        with self._lock:
            if not self._is_monitoring:
                return
            self._is_monitoring = False

            for name, handler in self._listeners:
                self.signals.remove_listener(name, handler)
            self._listeners = []

            if self._poll_handle is not None:
                self._poll_handle.cancel()
                self._poll_handle = None
            for handle in self._retry_handles:
                handle.cancel()
            self._retry_handles = []

            if self.signals.is_fullscreen():
                try:
                    self.signals.exit_fullscreen()
                except Exception as e:
                    logger.warning(f"Failed to exit fullscreen: {e}")
            self._is_fullscreen = False

        logger.info("Environment monitoring stopped")

    def enter_fullscreen(self) -> bool:
        """Best-effort fullscreen request; failures are logged, not raised"""
        try:
            self.signals.request_fullscreen(self._target)
        except Exception as e:
            logger.error(f"Failed to enter fullscreen: {e}")
            return False
        with self._lock:
            self._is_fullscreen = True
        return True

    # ==================== WATCHERS ====================

    def _listen(self, name: str, handler: Callable[[SignalEvent], None]):
        self.signals.add_listener(name, handler)
        self._listeners.append((name, handler))

    def _register_watchers(self):
        config = self.config

        if config.enable_tab_switch_detection:
            self._listen(SignalName.VISIBILITY_CHANGE, self._handle_visibility_change)

        if config.enable_window_blur_detection:
            self._listen(SignalName.BLUR, self._handle_blur)

        if config.enable_right_click_prevention:
            self._listen(SignalName.CONTEXT_MENU, self._handle_context_menu)

        if config.enable_dev_tools_prevention or config.enable_copy_paste_prevention:
            self._listen(SignalName.KEYDOWN, self._handle_keydown)

        if config.enable_copy_paste_prevention:
            for name in SignalName.CLIPBOARD:
                self._listen(name, self._handle_clipboard)

        if config.enable_resize_detection:
            self._listen(SignalName.RESIZE, self._handle_resize)

        if config.enable_fullscreen:
            self._listen(SignalName.FULLSCREEN_CHANGE, self._handle_fullscreen_change)

        if config.enable_dev_tools_prevention:
            self._poll_handle = self.scheduler.call_every(
                config.dev_tools_poll_interval, self._check_dev_tools
            )

    def _handle_visibility_change(self, event: SignalEvent):
        if self.signals.is_hidden():
            self.record_violation(ViolationType.TAB_SWITCH, "User switched tabs")

    def _handle_blur(self, event: SignalEvent):
        if not self.signals.has_focus():
            self.record_violation(ViolationType.WINDOW_BLUR, "Window lost focus")

    def _handle_context_menu(self, event: SignalEvent):
        event.prevent_default()
        self.record_violation(ViolationType.RIGHT_CLICK, "Right-click attempted")

    def _handle_keydown(self, event: SignalEvent):
        shortcut = next((s for s in FORBIDDEN_SHORTCUTS if s.matches(event)), None)
        if shortcut is None:
            return

        event.prevent_default()
        combo = event.shortcut_string()

        # A shortcut whose own watcher is off still counts as a forbidden shortcut
        if shortcut.category is ViolationType.DEV_TOOLS and self.config.enable_dev_tools_prevention:
            self.record_violation(ViolationType.DEV_TOOLS, f"Dev tools shortcut: {combo}")
        elif shortcut.category is ViolationType.COPY_PASTE and self.config.enable_copy_paste_prevention:
            self.record_violation(ViolationType.COPY_PASTE, f"Copy/paste shortcut: {combo}")
        else:
            self.record_violation(ViolationType.KEYBOARD_SHORTCUT, f"Forbidden shortcut: {combo}")

    def _handle_clipboard(self, event: SignalEvent):
        event.prevent_default()
        self.record_violation(ViolationType.COPY_PASTE, f"{event.name} attempted")

    def _handle_resize(self, event: SignalEvent):
        with self._lock:
            if self._window_size is None:
                return
            old_width, old_height = self._window_size
            width, height = self.signals.inner_size()
            threshold = self.config.resize_threshold_px

            if abs(width - old_width) > threshold or abs(height - old_height) > threshold:
                # Compare against the last reported size so one drag fires once
                self._window_size = (width, height)
                self.record_violation(
                    ViolationType.WINDOW_RESIZE,
                    f"Window resized from {old_width}x{old_height} to {width}x{height}"
                )

    def _handle_fullscreen_change(self, event: SignalEvent):
        with self._lock:
            self._is_fullscreen = self.signals.is_fullscreen()
            if self._is_fullscreen or not self._is_monitoring:
                return

            self.record_violation(ViolationType.FULLSCREEN_EXIT, "Exited fullscreen mode")
            if self._is_monitoring:
                self._retry_handles.append(
                    self.scheduler.call_later(self.config.fullscreen_retry_delay, self._retry_fullscreen)
                )

    def _retry_fullscreen(self):
        # The host may refuse re-entry without a fresh user gesture
        with self._lock:
            if self._is_monitoring and not self.signals.is_fullscreen():
                logger.info("Re-requesting fullscreen after exit")
                self.enter_fullscreen()

    def is_dev_tools_open(self) -> bool:
        """
        Window-gap heuristic for docked developer tools

        Approximate: narrow viewports and browser chrome can trigger it.
        """
        outer_width, outer_height = self.signals.outer_size()
        inner_width, inner_height = self.signals.inner_size()
        width_gap = outer_width - inner_width
        height_gap = outer_height - inner_height
        return (
            width_gap > self.config.dev_tools_gap_px
            or height_gap > self.config.dev_tools_gap_px
            or height_gap > self.config.dev_tools_height_gap_px
        )

    def _check_dev_tools(self):
        with self._lock:
            if not self._is_monitoring:
                return
            is_open = self.is_dev_tools_open()
            # The host may have stopped us while its sizes were read
            if is_open and self._is_monitoring:
                self.record_violation(ViolationType.DEV_TOOLS, "Developer tools detected open")

    # ==================== VIOLATIONS ====================

    def record_violation(self, violation_type: ViolationType, details: Optional[str] = None) -> Optional[Violation]:
        """
        Append a violation, escalate the warning level and terminate if a limit is reached

        Returns:
            The recorded Violation, or None once the session is terminated
        """
        with self._lock:
            if self._is_terminated:
                return None

            violation = Violation(
                id=uuid.uuid4().hex,
                type=violation_type,
                timestamp=self.scheduler.time(),
                severity=VIOLATION_SEVERITY[violation_type],
                details=details,
                screenshot=self._capture_screenshot(),
            )

            self._violations.append(violation)
            self._counts[violation_type] = self._counts.get(violation_type, 0) + 1
            self._total += 1
            previous_level = self._warning_level
            self._warning_level = self.config.warning_thresholds.level_for(self._total)

            violation_logger.warning(
                f"Violation recorded: {violation_type.value} - {details} "
                f"(total {self._total}, level {self._warning_level.value})"
            )

            self._violation_observers.publish(violation)
            if self._warning_level is not previous_level:
                self._level_observers.publish(self._warning_level)

            if self._should_terminate():
                self._terminate()

            return violation

    def _capture_screenshot(self) -> Optional[str]:
        if not (self.config.screenshot_on_violation and self.snapshot_provider):
            return None
        try:
            return self.snapshot_provider()
        except Exception as e:
            logger.warning(f"Violation screenshot failed: {e}")
            return None

    def _should_terminate(self) -> bool:
        if not self.config.auto_terminate_on_max_violations:
            return False

        if self._total >= self.config.max_violations:
            return True

        for violation_type, count in self._counts.items():
            threshold = self.config.violation_thresholds.get(violation_type)
            if threshold and count >= threshold:
                return True

        return False

    def _terminate(self):
        self._is_terminated = True
        violation_logger.error(f"Session terminated after {self._total} violations")
        self._termination_observers.publish(list(self._violations))
        self.stop()

    def clear_violations(self):
        """Reset log, counts, warning level and termination; monitoring is not restarted"""
        with self._lock:
            self._violations = []
            self._counts = {}
            self._total = 0
            previous_level = self._warning_level
            self._warning_level = EnvironmentWarningLevel.NONE
            self._is_terminated = False
            if previous_level is not EnvironmentWarningLevel.NONE:
                self._level_observers.publish(self._warning_level)
        logger.info("Violations cleared")

    # ==================== QUERIES ====================

    def get_state(self) -> EnvironmentState:
        with self._lock:
            return EnvironmentState(
                is_monitoring=self._is_monitoring,
                is_fullscreen=self._is_fullscreen,
                violations=tuple(self._violations),
                violation_counts=dict(self._counts),
                total_violations=self._total,
                warning_level=self._warning_level,
                is_terminated=self._is_terminated,
            )

    def get_violations(self) -> List[Violation]:
        with self._lock:
            return list(self._violations)

    def get_violations_by_type(self, violation_type: ViolationType) -> List[Violation]:
        with self._lock:
            return [v for v in self._violations if v.type is violation_type]

    def violation_message(self, last: int = 3) -> str:
        """Readable summary of the most recent violations, e.g. for a warning banner"""
        with self._lock:
            recent = self._violations[-last:] if last > 0 else []
        return " | ".join(VIOLATION_MESSAGES[v.type] for v in recent)
