"""Camera and projector calibration for structured-light scanning rigs."""

__version__ = "0.1.0"
