"""Operator-gated acquisition of calibration board observations."""

import logging
from enum import Enum, auto
from typing import Callable, List, Optional, Protocol

import cv2
import numpy as np

from procam_calib.calibration.correspondence import CorrespondenceSampler
from procam_calib.calibration.devices import (
    FrameSource,
    TriggerEvent,
    UserFeedbackSink,
    to_intensity,
)
from procam_calib.calibration.errors import CalibrationCancelled, ConfigurationError
from procam_calib.calibration.geometry import BoardSpec

logger = logging.getLogger(__name__)

# Returns (N, 2) marker centers, or None when no grid was found.
MarkerDetector = Callable[[np.ndarray], Optional[np.ndarray]]


class CollectorState(Enum):
    AWAITING_TRIGGER = auto()
    CAPTURING = auto()
    ACCEPTED = auto()
    REJECTED = auto()
    CANCELLED = auto()


class CircleGridDetector:
    """Asymmetric circle grid detector backed by ``cv2.findCirclesGrid``."""

    def __init__(self, board: BoardSpec):
        self.pattern_size = board.pattern_size

    def __call__(self, gray: np.ndarray) -> Optional[np.ndarray]:
        found, centers = cv2.findCirclesGrid(
            gray,
            self.pattern_size,
            flags=cv2.CALIB_CB_ASYMMETRIC_GRID,
        )
        if not found or centers is None:
            return None
        return centers.reshape(-1, 2)


class PointExtractor(Protocol):
    """Turns detected camera marker pixels into one observation."""

    def prepare(self) -> None: ...

    def extract(self, marker_pixels: np.ndarray) -> np.ndarray: ...


class CameraPointExtractor:
    """Observations are the camera marker pixels themselves."""

    def prepare(self) -> None:
        pass

    def extract(self, marker_pixels: np.ndarray) -> np.ndarray:
        return np.asarray(marker_pixels, dtype=np.float32).reshape(-1, 2)


class ProjectorPointExtractor:
    """Observations are projector coordinates recovered with structured light."""

    def __init__(self, sampler: CorrespondenceSampler):
        self.sampler = sampler

    def prepare(self) -> None:
        self.sampler.project_white()

    def extract(self, marker_pixels: np.ndarray) -> np.ndarray:
        return self.sampler.sample_projector_points(marker_pixels)


class ObservationCollector:
    """Collects board observations, one per operator confirmation.

    Loops ``AWAITING_TRIGGER -> CAPTURING -> ACCEPTED | REJECTED`` until the
    requested number of observations is accepted. A rejected capture (grid not
    found or wrong marker count) is simply retried. Cancelling from the
    trigger wait raises ``CalibrationCancelled``.
    """

    def __init__(
        self,
        camera: FrameSource,
        feedback: UserFeedbackSink,
        board: BoardSpec,
        detector: Optional[MarkerDetector] = None,
        extractor: Optional[PointExtractor] = None,
    ):
        """Initialize collector.

        Args:
            camera: Camera looking at the board
            feedback: Preview window and trigger input
            board: Board layout, fixes the expected marker count
            detector: Marker detector, defaults to an asymmetric circle grid
            extractor: Point extraction strategy, defaults to camera pixels
        """
        self.camera = camera
        self.feedback = feedback
        self.board = board
        self.detector = detector or CircleGridDetector(board)
        self.extractor = extractor or CameraPointExtractor()

        self.state = CollectorState.AWAITING_TRIGGER
        self.capture_attempts = 0
        self._last_points: Optional[np.ndarray] = None

    def collect(self, requested_samples: int) -> List[np.ndarray]:
        """Block until ``requested_samples`` observations are accepted.

        Returns:
            List of (marker_count, 2) float32 observations
        """
        if requested_samples < 1:
            raise ConfigurationError(
                f"Need at least one sample, got {requested_samples}"
            )

        observations: List[np.ndarray] = []
        while len(observations) < requested_samples:
            self._await_trigger(len(observations), requested_samples)

            observation = self._capture()
            if observation is not None:
                observations.append(observation)
                logger.info("Captured pose %d/%d", len(observations), requested_samples)

        return observations

    def _await_trigger(self, accepted: int, requested: int) -> None:
        self.state = CollectorState.AWAITING_TRIGGER
        self.feedback.overlay_text(f"Press <Enter> to capture pose\n{accepted}/{requested}")

        while True:
            frame = self.camera.get_frame()
            self.feedback.show_image(self._draw_preview(frame))

            event = self.feedback.poll_trigger()
            if event is TriggerEvent.CONFIRM:
                return
            if event is TriggerEvent.CANCEL:
                self.state = CollectorState.CANCELLED
                raise CalibrationCancelled(
                    f"Cancelled after {accepted}/{requested} poses"
                )

    def _draw_preview(self, frame: np.ndarray) -> np.ndarray:
        if self._last_points is None:
            return frame

        preview = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR) if frame.ndim == 2 else frame.copy()
        cv2.drawChessboardCorners(
            preview,
            self.board.pattern_size,
            self._last_points.reshape(-1, 1, 2),
            True,
        )
        return preview

    def _capture(self) -> Optional[np.ndarray]:
        self.state = CollectorState.CAPTURING
        self.capture_attempts += 1
        self._last_points = None

        self.extractor.prepare()
        gray = to_intensity(self.camera.get_frame())
        points = self.detector(gray)

        if points is None or len(points) != self.board.marker_count:
            self.state = CollectorState.REJECTED
            logger.debug(
                "Rejected capture %d: %s markers detected, expected %d",
                self.capture_attempts,
                "no" if points is None else len(points),
                self.board.marker_count,
            )
            return None

        points = np.asarray(points, dtype=np.float32).reshape(-1, 2)
        self._last_points = points
        self.state = CollectorState.ACCEPTED
        return self.extractor.extract(points)
