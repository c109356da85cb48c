"""Intrinsic and extrinsic calibration from board observations."""

import logging
from dataclasses import asdict, dataclass, replace
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from procam_calib.calibration.errors import ConfigurationError, SolverFailure

logger = logging.getLogger(__name__)

RECOMMENDED_MIN_VIEWS = 5


@dataclass
class CalibrationData:
    """Intrinsics plus the pose of one reference view.

    Produced in two stages: ``estimate_intrinsics`` fills the matrix and
    distortion, ``estimate_extrinsic`` returns a copy with the pose set.
    """

    intrinsic_matrix: np.ndarray  # 3x3
    distortion_coeffs: np.ndarray  # (k1, k2, p1, p2, k3)
    image_size: Tuple[int, int]  # (width, height)
    reprojection_error: float = 0.0
    rotation_vector: Optional[np.ndarray] = None
    translation_vector: Optional[np.ndarray] = None

    @property
    def is_complete(self) -> bool:
        return self.rotation_vector is not None and self.translation_vector is not None

    def project_points(self, object_points: np.ndarray) -> np.ndarray:
        """Project board points through the calibrated pose.

        Returns:
            (N, 2) image points
        """
        if not self.is_complete:
            raise ConfigurationError("Extrinsic stage has not run; no pose to project with")

        image_points, _ = cv2.projectPoints(
            np.asarray(object_points, dtype=np.float64).reshape(-1, 3),
            self.rotation_vector,
            self.translation_vector,
            self.intrinsic_matrix,
            self.distortion_coeffs,
        )
        return image_points.reshape(-1, 2)

    def to_dict(self) -> dict:
        """Field mapping; arrays stay numpy arrays."""
        return asdict(self)


class CalibrationEstimator:
    """Wraps ``cv2.calibrateCamera`` and ``cv2.solvePnP``.

    The distortion model is the 5-coefficient (k1, k2, p1, p2, k3) model; the
    rational terms k4 and k5 stay pinned at zero.
    """

    CALIBRATION_FLAGS = cv2.CALIB_FIX_K4 | cv2.CALIB_FIX_K5

    def __init__(
        self,
        flags: int = CALIBRATION_FLAGS,
        criteria: Tuple[int, int, float] = (
            cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER,
            100,
            1e-9,
        ),
    ):
        self.flags = flags
        self.criteria = criteria

    @staticmethod
    def _check_observation(object_points: np.ndarray, observation: np.ndarray) -> np.ndarray:
        observation = np.asarray(observation, dtype=np.float32).reshape(-1, 2)
        if len(observation) != len(object_points):
            raise ConfigurationError(
                f"Observation has {len(observation)} points, board has {len(object_points)}"
            )
        return observation

    def estimate_intrinsics(
        self,
        object_points: np.ndarray,
        observations: Sequence[np.ndarray],
        view_size: Tuple[int, int],
    ) -> CalibrationData:
        """Solve for the intrinsic matrix and distortion over all views.

        Args:
            object_points: (N, 3) board points
            observations: Per-view (N, 2) image points, same order as the board
            view_size: (width, height) of the observing device

        Returns:
            CalibrationData without pose
        """
        if len(observations) < 1:
            raise ConfigurationError("Intrinsic calibration needs at least one observation")
        if len(observations) < RECOMMENDED_MIN_VIEWS:
            logger.warning(
                "Calibrating from %d views; results are unreliable below %d",
                len(observations),
                RECOMMENDED_MIN_VIEWS,
            )

        object_points = np.asarray(object_points, dtype=np.float32).reshape(-1, 3)
        image_points: List[np.ndarray] = [
            self._check_observation(object_points, observation).reshape(-1, 1, 2)
            for observation in observations
        ]
        object_point_list = [object_points] * len(image_points)

        intrinsic_matrix = np.eye(3, dtype=np.float64)
        distortion = np.zeros((5, 1), dtype=np.float64)

        try:
            rms, intrinsic_matrix, distortion, _, _ = cv2.calibrateCamera(
                object_point_list,
                image_points,
                tuple(int(v) for v in view_size),
                intrinsic_matrix,
                distortion,
                flags=self.flags,
                criteria=self.criteria,
            )
        except cv2.error as e:
            raise SolverFailure(f"Intrinsic calibration failed: {e}") from e

        if not (
            np.isfinite(rms)
            and np.all(np.isfinite(intrinsic_matrix))
            and np.all(np.isfinite(distortion))
        ):
            raise SolverFailure("Intrinsic calibration did not converge")

        logger.info(
            "Intrinsics from %d views: fx=%.2f fy=%.2f cx=%.2f cy=%.2f rms=%.4fpx",
            len(image_points),
            intrinsic_matrix[0, 0],
            intrinsic_matrix[1, 1],
            intrinsic_matrix[0, 2],
            intrinsic_matrix[1, 2],
            rms,
        )

        return CalibrationData(
            intrinsic_matrix=intrinsic_matrix,
            distortion_coeffs=distortion.ravel()[:5],
            image_size=(int(view_size[0]), int(view_size[1])),
            reprojection_error=float(rms),
        )

    def estimate_extrinsic(
        self,
        object_points: np.ndarray,
        observation: np.ndarray,
        calibration_data: CalibrationData,
    ) -> CalibrationData:
        """Solve the board pose for one view with known intrinsics.

        Returns:
            Copy of ``calibration_data`` with rotation and translation set
        """
        if calibration_data.intrinsic_matrix is None:
            raise ConfigurationError("Extrinsic stage needs intrinsics")

        object_points = np.asarray(object_points, dtype=np.float32).reshape(-1, 3)
        observation = self._check_observation(object_points, observation)

        try:
            ok, rotation_vector, translation_vector = cv2.solvePnP(
                object_points,
                observation,
                calibration_data.intrinsic_matrix,
                calibration_data.distortion_coeffs,
            )
        except cv2.error as e:
            raise SolverFailure(f"Pose estimation failed: {e}") from e

        if not ok:
            raise SolverFailure("Pose estimation did not converge")

        logger.info(
            "Extrinsics: rvec=%s tvec=%s",
            np.array2string(rotation_vector.ravel(), precision=4),
            np.array2string(translation_vector.ravel(), precision=4),
        )

        return replace(
            calibration_data,
            intrinsic_matrix=calibration_data.intrinsic_matrix.copy(),
            distortion_coeffs=calibration_data.distortion_coeffs.copy(),
            rotation_vector=rotation_vector.ravel(),
            translation_vector=translation_vector.ravel(),
        )
