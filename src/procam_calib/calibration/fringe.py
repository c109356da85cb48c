"""Phase-shifted fringe patterns, N-step phase wrapping and heterodyne unwrapping.

Fringes follow ``I_k = A + B * cos(2*pi*coord/wavelength - 2*pi*k/N)``, so
the N-step estimator ``atan2(sum I_k sin d_k, sum I_k cos d_k)`` with
``d_k = 2*pi*k/N`` returns the projected phase directly.

Two wavelengths that differ slightly beat at
``wavelength_1 * wavelength_2 / |wavelength_2 - wavelength_1|``; the beat phase
is unambiguous across that extent and fixes the fringe order of the finer
pattern.
"""

from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from procam_calib.calibration.errors import ConfigurationError

TWO_PI = 2.0 * np.pi


class FringeOrientation(Enum):
    """Which projector axis a fringe set encodes."""

    HORIZONTAL = "horizontal"  # phase varies with column (u)
    VERTICAL = "vertical"  # phase varies with row (v)


def _phase_shifts(step_count: int) -> np.ndarray:
    return TWO_PI * np.arange(step_count) / step_count


def generate_fringe(
    size: Tuple[int, int],
    wavelength: float,
    orientation: FringeOrientation,
    step_count: int = 5,
    offset: float = 127.5,
    amplitude: float = 127.5,
) -> List[np.ndarray]:
    """Generate one phase-shifted fringe set.

    Args:
        size: (width, height) of the projector
        wavelength: Fringe period in projector pixels
        orientation: Axis encoded by the fringes
        step_count: Number of phase shifts N
        offset: Mean intensity A
        amplitude: Modulation B

    Returns:
        List of N (height, width) uint8 images
    """
    width, height = size
    if width <= 0 or height <= 0:
        raise ConfigurationError(f"Invalid fringe size {width}x{height}")
    if wavelength <= 0:
        raise ConfigurationError(f"Fringe wavelength must be positive, got {wavelength}")
    if step_count < 3:
        raise ConfigurationError(f"Phase shifting needs at least 3 steps, got {step_count}")

    if orientation is FringeOrientation.HORIZONTAL:
        coord = np.arange(width, dtype=np.float64)[np.newaxis, :]
    else:
        coord = np.arange(height, dtype=np.float64)[:, np.newaxis]
    phase = TWO_PI * coord / wavelength

    patterns = []
    for shift in _phase_shifts(step_count):
        profile = offset + amplitude * np.cos(phase - shift)
        profile = np.clip(np.rint(profile), 0, 255).astype(np.uint8)
        patterns.append(np.ascontiguousarray(np.broadcast_to(profile, (height, width))))

    return patterns


def _phase_sums(frames: Sequence[np.ndarray]) -> Tuple[np.ndarray, np.ndarray]:
    shapes = {np.shape(frame) for frame in frames}
    if len(shapes) != 1:
        raise ConfigurationError(f"Fringe frames differ in shape: {sorted(shapes)}")
    if len(next(iter(shapes))) != 2:
        raise ConfigurationError("Fringe frames must be single-channel intensity images")

    stack = np.stack([np.asarray(frame, dtype=np.float64) for frame in frames], axis=0)
    shifts = _phase_shifts(len(frames))
    sin_sum = np.tensordot(np.sin(shifts), stack, axes=1)
    cos_sum = np.tensordot(np.cos(shifts), stack, axes=1)
    return sin_sum, cos_sum


def wrap_phase(frames: Sequence[np.ndarray], step_count: int) -> np.ndarray:
    """Compute the wrapped phase of a captured fringe set.

    Args:
        frames: Captured single-channel frames, in projection order
        step_count: Number of phase shifts the set was generated with

    Returns:
        Float64 phase field in (-pi, pi]
    """
    if step_count < 3:
        raise ConfigurationError(f"Phase shifting needs at least 3 steps, got {step_count}")
    if len(frames) != step_count:
        raise ConfigurationError(
            f"Expected {step_count} fringe frames, got {len(frames)}"
        )

    sin_sum, cos_sum = _phase_sums(frames)
    phase = np.arctan2(sin_sum, cos_sum)
    # arctan2 returns -pi for a negative zero sine sum
    return np.where(phase <= -np.pi, np.pi, phase)


def phase_modulation(frames: Sequence[np.ndarray]) -> np.ndarray:
    """Fringe amplitude B per pixel; low values mean the phase is unreliable."""
    if len(frames) < 3:
        raise ConfigurationError(f"Phase shifting needs at least 3 steps, got {len(frames)}")
    sin_sum, cos_sum = _phase_sums(frames)
    return (2.0 / len(frames)) * np.hypot(sin_sum, cos_sum)


class HeterodyneUnwrapper:
    """Two-wavelength phase unwrapper.

    The finer (shorter) wavelength carries the precision, the beat between the
    two carries the fringe order.
    """

    def __init__(self, wavelengths: Tuple[float, float]):
        """Initialize unwrapper.

        Args:
            wavelengths: The two wavelengths, in the order fields are passed
        """
        if len(wavelengths) != 2:
            raise ConfigurationError(
                f"Heterodyne unwrapping needs exactly two wavelengths, got {len(wavelengths)}"
            )
        first, second = (float(w) for w in wavelengths)
        if first <= 0 or second <= 0:
            raise ConfigurationError(f"Wavelengths must be positive, got {wavelengths}")
        if first == second:
            raise ConfigurationError(f"Wavelengths must differ, got {wavelengths}")

        self.wavelengths = (first, second)
        self._fine_index = 0 if first < second else 1

    @property
    def fine_wavelength(self) -> float:
        return self.wavelengths[self._fine_index]

    @property
    def coarse_wavelength(self) -> float:
        return self.wavelengths[1 - self._fine_index]

    @property
    def beat_wavelength(self) -> float:
        fine, coarse = self.fine_wavelength, self.coarse_wavelength
        return fine * coarse / (coarse - fine)

    def covers(self, extent: int) -> bool:
        """Whether the beat is unambiguous over ``extent`` projector pixels."""
        return extent <= self.beat_wavelength

    def unwrap_phase(
        self,
        fields: Sequence[np.ndarray],
        extent: Optional[int] = None,
    ) -> np.ndarray:
        """Resolve the 2*pi ambiguity of the finer field.

        Args:
            fields: Wrapped phase at each wavelength, same order as ``wavelengths``
            extent: Projector pixels along the encoded axis. When shorter than
                the beat wavelength, beat phases in the unused gap are read as
                small negative values so coordinate 0 survives noise.

        Returns:
            Absolute phase ``2*pi*coord / fine_wavelength``
        """
        if len(fields) != 2:
            raise ConfigurationError(
                f"Heterodyne unwrapping needs exactly two phase fields, got {len(fields)}"
            )
        if np.shape(fields[0]) != np.shape(fields[1]):
            raise ConfigurationError(
                f"Phase fields differ in shape: {np.shape(fields[0])} vs {np.shape(fields[1])}"
            )

        fine = np.mod(np.asarray(fields[self._fine_index], dtype=np.float64), TWO_PI)
        coarse = np.mod(np.asarray(fields[1 - self._fine_index], dtype=np.float64), TWO_PI)

        beat = np.mod(fine - coarse, TWO_PI)
        if extent is not None and self.covers(extent):
            split = np.pi * (1.0 + extent / self.beat_wavelength)
            beat = np.where(beat > split, beat - TWO_PI, beat)
        ratio = self.beat_wavelength / self.fine_wavelength
        order = np.round((beat * ratio - fine) / TWO_PI)

        return fine + TWO_PI * order
