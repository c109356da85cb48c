"""Exceptions raised by the calibration workflows."""


class CalibrationError(Exception):
    """Base class for calibration failures."""


class ConfigurationError(CalibrationError, ValueError):
    """Invalid board, fringe or observation setup. Raised before any capture."""


class SolverFailure(CalibrationError, RuntimeError):
    """Intrinsic or extrinsic solve did not produce a usable result."""


class CalibrationCancelled(CalibrationError):
    """Operator cancelled while the collector was waiting for a trigger."""


class DeviceError(CalibrationError, RuntimeError):
    """Camera, projector or preview window could not be opened or read."""
