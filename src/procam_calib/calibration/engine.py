"""Camera and projector calibration workflows."""

import logging
import threading
from typing import Optional, Tuple

from procam_calib.calibration.collector import (
    MarkerDetector,
    ObservationCollector,
    ProjectorPointExtractor,
)
from procam_calib.calibration.correspondence import CorrespondenceSampler, FringeSettings
from procam_calib.calibration.devices import FrameSource, PatternSink, UserFeedbackSink
from procam_calib.calibration.errors import ConfigurationError
from procam_calib.calibration.estimator import CalibrationData, CalibrationEstimator
from procam_calib.calibration.geometry import BoardSpec, compute_object_points

logger = logging.getLogger(__name__)


class CalibrationEngine:
    """Runs the capture and solve sequence for a camera or a projector.

    Both workflows collect ``requested_samples`` views for the intrinsics, then
    one more view for the pose. The projector is calibrated as an inverse
    camera observing the projector coordinates recovered by structured light.
    A failure anywhere aborts the whole session.
    """

    def __init__(
        self,
        board: BoardSpec,
        feedback: UserFeedbackSink,
        detector: Optional[MarkerDetector] = None,
        fringe_settings: Optional[FringeSettings] = None,
        estimator: Optional[CalibrationEstimator] = None,
    ):
        """Initialize engine.

        Args:
            board: Calibration board layout
            feedback: Preview window and trigger input
            detector: Marker detector override (defaults to circle grid)
            fringe_settings: Structured light parameters for projector calibration
            estimator: Solver wrapper
        """
        self.board = board
        self.object_points = compute_object_points(board)
        self.feedback = feedback
        self.detector = detector
        self.fringe_settings = fringe_settings or FringeSettings()
        self.estimator = estimator or CalibrationEstimator()

        self._session_lock = threading.Lock()

    def calibrate_camera(self, camera: FrameSource, requested_samples: int) -> CalibrationData:
        """Calibrate camera intrinsics and the pose of a final reference view."""
        self._check_samples(requested_samples)
        with self._session_lock:
            logger.info("Camera calibration: collecting %d poses", requested_samples)
            collector = ObservationCollector(
                camera, self.feedback, self.board, detector=self.detector
            )
            view_size = (camera.get_width(), camera.get_height())
            return self._calibrate(collector, view_size, requested_samples)

    def calibrate_projector(
        self,
        camera: FrameSource,
        projector: PatternSink,
        requested_samples: int,
    ) -> CalibrationData:
        """Calibrate projector intrinsics and pose through structured light."""
        self._check_samples(requested_samples)
        with self._session_lock:
            logger.info("Projector calibration: collecting %d poses", requested_samples)
            sampler = CorrespondenceSampler(camera, projector, self.fringe_settings)
            collector = ObservationCollector(
                camera,
                self.feedback,
                self.board,
                detector=self.detector,
                extractor=ProjectorPointExtractor(sampler),
            )
            view_size = (projector.get_width(), projector.get_height())
            return self._calibrate(collector, view_size, requested_samples)

    @staticmethod
    def _check_samples(requested_samples: int) -> None:
        if requested_samples < 1:
            raise ConfigurationError(f"Need at least one sample, got {requested_samples}")

    def _calibrate(
        self,
        collector: ObservationCollector,
        view_size: Tuple[int, int],
        requested_samples: int,
    ) -> CalibrationData:
        observations = collector.collect(requested_samples)
        intrinsics = self.estimator.estimate_intrinsics(
            self.object_points, observations, view_size
        )

        logger.info("Intrinsics done, capture the reference pose")
        reference = collector.collect(1)[0]
        result = self.estimator.estimate_extrinsic(self.object_points, reference, intrinsics)

        logger.info(
            "Calibration complete after %d capture attempts", collector.capture_attempts
        )
        return result
