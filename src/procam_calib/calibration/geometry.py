"""Calibration board geometry for asymmetric circle grids."""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from procam_calib.calibration.errors import ConfigurationError


@dataclass(frozen=True)
class BoardSpec:
    """Asymmetric circle grid layout.

    Attributes:
        markers_per_row: Markers along one row (OpenCV pattern width)
        markers_per_col: Number of rows (OpenCV pattern height)
        marker_spacing: Distance between neighbouring rows, in board units
    """

    markers_per_row: int
    markers_per_col: int
    marker_spacing: float = 0.5

    def __post_init__(self) -> None:
        if self.markers_per_row <= 0 or self.markers_per_col <= 0:
            raise ConfigurationError(
                f"Board needs positive marker counts, got "
                f"{self.markers_per_row}x{self.markers_per_col}"
            )
        if self.marker_spacing <= 0:
            raise ConfigurationError(
                f"Marker spacing must be positive, got {self.marker_spacing}"
            )

    @property
    def marker_count(self) -> int:
        return self.markers_per_row * self.markers_per_col

    @property
    def pattern_size(self) -> Tuple[int, int]:
        """(points_per_row, points_per_column) as OpenCV expects it."""
        return (self.markers_per_row, self.markers_per_col)


def compute_object_points(spec: BoardSpec) -> np.ndarray:
    """Compute board-local 3D marker positions.

    Points are row-major (row 0 first, increasing column within a row), the
    same order ``cv2.findCirclesGrid`` reports asymmetric grid centers in.

    Args:
        spec: Board layout

    Returns:
        (markers_per_row * markers_per_col, 3) float32 array with z = 0
    """
    rows, cols = np.mgrid[0 : spec.markers_per_col, 0 : spec.markers_per_row]
    rows = rows.ravel()
    cols = cols.ravel()

    object_points = np.zeros((spec.marker_count, 3), dtype=np.float32)
    object_points[:, 0] = (2 * cols + rows % 2) * spec.marker_spacing
    object_points[:, 1] = rows * spec.marker_spacing
    return object_points
