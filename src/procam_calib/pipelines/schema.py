"""Configuration schema for the projector-camera calibration pipeline."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from procam_calib.calibration.correspondence import FringeSettings
from procam_calib.calibration.geometry import BoardSpec


def parse_resolution(text: str) -> tuple[int, int]:
    """Parse a WIDTHxHEIGHT string."""
    parts = text.lower().split("x")
    try:
        width, height = (int(part) for part in parts)
    except ValueError:
        raise ValueError(f"Invalid resolution {text!r}, expected WIDTHxHEIGHT") from None
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid resolution {text!r}, expected WIDTHxHEIGHT")
    return (width, height)


class BoardConfig(BaseModel):
    """Asymmetric circle grid printed on the calibration board."""

    markers_per_row: int = Field(
        default=4,
        ge=1,
        description="Circles along one row of the grid",
    )
    markers_per_col: int = Field(
        default=11,
        ge=1,
        description="Number of rows in the grid",
    )
    marker_spacing: float = Field(
        default=0.5,
        gt=0.0,
        description="Distance between neighbouring rows, in board units",
    )

    def to_spec(self) -> BoardSpec:
        return BoardSpec(self.markers_per_row, self.markers_per_col, self.marker_spacing)


class FringeConfig(BaseModel):
    """Phase-shifting structured light parameters.

    The phase to projector pixel mapping (``phase_origin``, ``pitch``,
    ``coordinate_offset``) is linear and has to be tuned per rig.
    """

    step_count: int = Field(
        default=5,
        ge=3,
        le=32,
        description="Phase shifts per fringe set",
    )
    wavelengths: tuple[float, float] = Field(
        default=(70.0, 75.0),
        description="Fringe periods in projector pixels; close but distinct",
    )
    phase_origin: float = Field(
        default=0.0,
        description="Unwrapped phase at the projector coordinate origin",
    )
    pitch: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Projector pixels per 2*pi of unwrapped phase (default: finer wavelength)",
    )
    coordinate_offset: float = Field(
        default=1.0,
        description="Projector coordinate at the phase origin",
    )
    intensity_offset: float = Field(default=127.5, ge=0.0, le=255.0)
    intensity_amplitude: float = Field(default=127.5, gt=0.0, le=127.5)
    settle_seconds: float = Field(
        default=0.1,
        ge=0.0,
        le=5.0,
        description="Wait after each projected pattern before capturing",
    )
    min_modulation: float = Field(
        default=4.0,
        ge=0.0,
        description="Fringe amplitude below which a marker's phase is reported as weak",
    )

    @field_validator("wavelengths")
    @classmethod
    def _check_wavelengths(cls, value: tuple[float, float]) -> tuple[float, float]:
        if min(value) <= 0:
            raise ValueError("wavelengths must be positive")
        if value[0] == value[1]:
            raise ValueError("wavelengths must differ")
        return value

    @property
    def fine_wavelength(self) -> float:
        return min(self.wavelengths)

    @property
    def beat_wavelength(self) -> float:
        """Extent in projector pixels over which the wavelength pair is unambiguous."""
        fine, coarse = sorted(self.wavelengths)
        return fine * coarse / (coarse - fine)

    @property
    def projector_pitch(self) -> float:
        return self.pitch if self.pitch is not None else self.fine_wavelength

    def to_settings(self) -> FringeSettings:
        return FringeSettings(
            step_count=self.step_count,
            wavelengths=self.wavelengths,
            phase_origin=self.phase_origin,
            pitch=self.pitch,
            coordinate_offset=self.coordinate_offset,
            intensity_offset=self.intensity_offset,
            intensity_amplitude=self.intensity_amplitude,
            settle_seconds=self.settle_seconds,
            min_modulation=self.min_modulation,
        )


class ProCamCalibrationConfig(BaseModel):
    """Configuration for a calibration session."""

    camera_index: int = Field(
        default=0,
        ge=0,
        description="OpenCV camera device index",
    )

    projector_monitor: int = Field(
        default=1,
        ge=0,
        le=10,
        description="Monitor index for projector output (0=primary, 1=secondary)",
    )

    projector_resolution: str = Field(
        default="1024x768",
        description="Projector resolution as WIDTHxHEIGHT (e.g., 1024x768)",
    )

    requested_samples: int = Field(
        default=15,
        ge=1,
        le=100,
        description="Board poses for the intrinsic solve (5 or more recommended)",
    )

    poll_interval_ms: int = Field(
        default=15,
        ge=1,
        le=1000,
        description="Preview refresh and key polling interval",
    )

    board: BoardConfig = Field(default_factory=BoardConfig)
    fringe: FringeConfig = Field(default_factory=FringeConfig)

    output_path: Optional[str] = Field(
        default=None,
        description="Where to write the calibration result as JSON",
    )

    @field_validator("projector_resolution")
    @classmethod
    def _check_resolution(cls, value: str) -> str:
        parse_resolution(value)
        return value

    def parse_resolution(self) -> tuple[int, int]:
        """Parse ``projector_resolution`` to (width, height)."""
        return parse_resolution(self.projector_resolution)

    @model_validator(mode="after")
    def _check_beat_covers_projector(self) -> "ProCamCalibrationConfig":
        width, height = self.parse_resolution()
        beat = self.fringe.beat_wavelength
        if beat < max(width, height):
            raise ValueError(
                f"fringe wavelengths {self.fringe.wavelengths} beat at {beat:.1f}px, "
                f"shorter than the {self.projector_resolution} projector"
            )
        return self
