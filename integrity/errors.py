"""
Error types raised by the Proctoring Integrity Engine
"""


class IntegrityError(Exception):
    """Base class for all engine errors"""


class InitializationError(IntegrityError):
    """The landmark inference backend could not be brought up"""


class CalibrationError(IntegrityError):
    """The calibration landmark set was empty or degenerate; retry calibration"""


class DetectionError(IntegrityError):
    """A single frame could not be analyzed; the frame is dropped"""


class CapabilityError(IntegrityError):
    """The host refused a capability such as fullscreen or camera access"""


class SessionTerminatedError(IntegrityError):
    """The session was terminated; only clear_violations() recovers it"""
