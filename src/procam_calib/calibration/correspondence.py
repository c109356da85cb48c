"""Camera-pixel to projector-pixel correspondence via phase-shifted fringes."""

import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from procam_calib.calibration.devices import FrameSource, PatternSink, to_intensity
from procam_calib.calibration.errors import ConfigurationError
from procam_calib.calibration.fringe import (
    TWO_PI,
    FringeOrientation,
    HeterodyneUnwrapper,
    generate_fringe,
    phase_modulation,
    wrap_phase,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FringeSettings:
    """Structured light parameters.

    ``phase_origin``, ``pitch`` and ``coordinate_offset`` define the linear
    phase to projector pixel mapping and are tuned per rig.
    """

    step_count: int = 5
    wavelengths: Tuple[float, float] = (70.0, 75.0)
    phase_origin: float = 0.0
    pitch: Optional[float] = None  # defaults to the fine wavelength
    coordinate_offset: float = 1.0
    intensity_offset: float = 127.5
    intensity_amplitude: float = 127.5
    settle_seconds: float = 0.1
    min_modulation: float = 4.0

    @property
    def projector_pitch(self) -> float:
        return self.pitch if self.pitch is not None else min(self.wavelengths)


def phase_to_projector_coordinate(
    phase: np.ndarray,
    phase_origin: float,
    pitch: float,
    coordinate_offset: float = 1.0,
) -> np.ndarray:
    """Map unwrapped phase linearly to a projector pixel coordinate."""
    return coordinate_offset + (np.asarray(phase) - phase_origin) / (TWO_PI / pitch)


def sample_field(field: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Bilinearly sample a 2D field at (x, y) points, clamped to the field."""
    height, width = field.shape
    x = np.clip(points[:, 0].astype(np.float64), 0, width - 1)
    y = np.clip(points[:, 1].astype(np.float64), 0, height - 1)

    x0 = np.clip(np.floor(x).astype(int), 0, max(width - 2, 0))
    y0 = np.clip(np.floor(y).astype(int), 0, max(height - 2, 0))
    x1 = np.minimum(x0 + 1, width - 1)
    y1 = np.minimum(y0 + 1, height - 1)
    fx = x - x0
    fy = y - y0

    top = field[y0, x0] * (1 - fx) + field[y0, x1] * fx
    bottom = field[y1, x0] * (1 - fx) + field[y1, x1] * fx
    return top * (1 - fy) + bottom * fy


class CorrespondenceSampler:
    """Projects fringe sets on both axes and reads projector coordinates.

    Horizontal fringes encode projector columns, vertical fringes projector
    rows. Each axis is unwrapped with the two configured wavelengths.
    """

    def __init__(
        self,
        camera: FrameSource,
        projector: PatternSink,
        settings: Optional[FringeSettings] = None,
    ):
        """Initialize sampler.

        Args:
            camera: Camera observing the projected patterns
            projector: Projector showing the patterns
            settings: Fringe parameters
        """
        self.camera = camera
        self.projector = projector
        self.settings = settings or FringeSettings()
        self.unwrapper = HeterodyneUnwrapper(self.settings.wavelengths)

        if self.settings.step_count < 3:
            raise ConfigurationError(
                f"Phase shifting needs at least 3 steps, got {self.settings.step_count}"
            )
        if self.settings.projector_pitch <= 0:
            raise ConfigurationError(
                f"Projector pitch must be positive, got {self.settings.projector_pitch}"
            )

        self._patterns: Dict[FringeOrientation, List[List[np.ndarray]]] = {}
        self._check_coverage()

    @property
    def projector_size(self) -> Tuple[int, int]:
        return (self.projector.get_width(), self.projector.get_height())

    def _check_coverage(self) -> None:
        width, height = self.projector_size
        beat = self.unwrapper.beat_wavelength
        for axis, extent in (("x", width), ("y", height)):
            if not self.unwrapper.covers(extent):
                raise ConfigurationError(
                    f"Beat wavelength {beat:.1f}px does not cover projector {axis} "
                    f"extent {extent}px; choose closer wavelengths"
                )

    def fringe_sets(self, orientation: FringeOrientation) -> List[List[np.ndarray]]:
        """Fringe sets for both wavelengths, generated once per orientation."""
        if orientation not in self._patterns:
            self._patterns[orientation] = [
                generate_fringe(
                    self.projector_size,
                    wavelength,
                    orientation,
                    step_count=self.settings.step_count,
                    offset=self.settings.intensity_offset,
                    amplitude=self.settings.intensity_amplitude,
                )
                for wavelength in self.settings.wavelengths
            ]
        return self._patterns[orientation]

    def project_white(self) -> None:
        """Flood the board with white so the markers are easy to see."""
        width, height = self.projector_size
        self.projector.project_image(np.full((height, width, 3), 255, dtype=np.uint8))
        self._settle()

    def _settle(self) -> None:
        if self.settings.settle_seconds > 0:
            time.sleep(self.settings.settle_seconds)

    def capture_fringes(self, patterns: Sequence[np.ndarray]) -> List[np.ndarray]:
        """Project each pattern and grab one intensity frame for it."""
        captured = []
        for pattern in patterns:
            self.projector.project_image(pattern)
            self._settle()
            captured.append(to_intensity(self.camera.get_frame()))
        return captured

    def capture_unwrapped_phase(
        self,
        orientation: FringeOrientation,
        marker_pixels: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """Project both wavelengths on one axis and return the unwrapped phase.

        Args:
            orientation: Axis to encode
            marker_pixels: If given, weak fringe modulation at these pixels is logged

        Returns:
            Unwrapped phase field with camera frame shape
        """
        self.project_white()

        wrapped = []
        for wavelength, patterns in zip(self.settings.wavelengths, self.fringe_sets(orientation)):
            captured = self.capture_fringes(patterns)
            wrapped.append(wrap_phase(captured, self.settings.step_count))

            if marker_pixels is not None:
                modulation = sample_field(phase_modulation(captured), marker_pixels)
                weak = int(np.count_nonzero(modulation < self.settings.min_modulation))
                if weak:
                    logger.warning(
                        "%d/%d markers have weak %s fringe modulation at wavelength %.1f",
                        weak,
                        len(marker_pixels),
                        orientation.value,
                        wavelength,
                    )

        width, height = self.projector_size
        extent = width if orientation is FringeOrientation.HORIZONTAL else height
        return self.unwrapper.unwrap_phase(wrapped, extent=extent)

    def sample_projector_points(self, camera_marker_pixels: np.ndarray) -> np.ndarray:
        """Translate camera marker pixels into projector pixel coordinates.

        Args:
            camera_marker_pixels: (N, 2) marker centers in camera pixels

        Returns:
            (N, 2) float32 projector coordinates, same order as the input
        """
        marker_pixels = np.asarray(camera_marker_pixels, dtype=np.float64).reshape(-1, 2)

        coordinates = []
        for orientation in (FringeOrientation.HORIZONTAL, FringeOrientation.VERTICAL):
            unwrapped = self.capture_unwrapped_phase(orientation, marker_pixels)
            phase = sample_field(unwrapped, marker_pixels)
            coordinates.append(
                phase_to_projector_coordinate(
                    phase,
                    self.settings.phase_origin,
                    self.settings.projector_pitch,
                    self.settings.coordinate_offset,
                )
            )

        logger.debug("Sampled %d projector points", len(marker_pixels))
        return np.stack(coordinates, axis=1).astype(np.float32)
