"""In-memory stand-ins for camera, projector, operator and detector."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

import cv2
import numpy as np

from procam_calib.calibration import TriggerEvent


class StaticCamera:
    def __init__(self, width: int = 640, height: int = 480, value: int = 128):
        self.width = width
        self.height = height
        self.frame = np.full((height, width, 3), value, dtype=np.uint8)
        self.frames_read = 0

    def get_frame(self) -> np.ndarray:
        self.frames_read += 1
        return self.frame.copy()

    def get_width(self) -> int:
        return self.width

    def get_height(self) -> int:
        return self.height


class RecordingProjector:
    def __init__(self, width: int = 320, height: int = 240):
        self.width = width
        self.height = height
        self.images: list[np.ndarray] = []

    def project_image(self, image: np.ndarray) -> None:
        self.images.append(image)

    def get_width(self) -> int:
        return self.width

    def get_height(self) -> int:
        return self.height


class MirrorCamera:
    """Camera that sees the projector image pixel for pixel, in BGR."""

    def __init__(self, projector: RecordingProjector):
        self.projector = projector

    def get_frame(self) -> np.ndarray:
        if not self.projector.images:
            return np.zeros((self.projector.height, self.projector.width, 3), dtype=np.uint8)
        image = self.projector.images[-1]
        if image.ndim == 2:
            return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        return image.copy()

    def get_width(self) -> int:
        return self.projector.width

    def get_height(self) -> int:
        return self.projector.height


class ScriptedFeedback:
    """Plays back trigger events, then confirms forever."""

    def __init__(self, events: Iterable[TriggerEvent] = ()):
        self.events = list(events)
        self.texts: list[str] = []
        self.images_shown = 0

    def show_image(self, image: np.ndarray) -> None:
        self.images_shown += 1

    def overlay_text(self, text: str) -> None:
        self.texts.append(text)

    def poll_trigger(self) -> TriggerEvent:
        if self.events:
            return self.events.pop(0)
        return TriggerEvent.CONFIRM


class ScriptedDetector:
    """Returns the given detections in order, one per call."""

    def __init__(self, results: Sequence[Optional[np.ndarray]]):
        self.results = list(results)
        self.calls = 0

    def __call__(self, gray: np.ndarray) -> Optional[np.ndarray]:
        assert gray.ndim == 2
        result = self.results[self.calls]
        self.calls += 1
        return result


CAMERA_MATRIX = np.array(
    [[800.0, 0.0, 320.0], [0.0, 790.0, 240.0], [0.0, 0.0, 1.0]],
    dtype=np.float64,
)

POSES = [
    ((0.3, 0.0, 0.0), (-1.75, -2.5, 12.0)),
    ((-0.3, 0.0, 0.0), (-1.75, -2.5, 12.5)),
    ((0.0, 0.3, 0.0), (-1.5, -2.5, 12.0)),
    ((0.0, -0.3, 0.0), (-2.0, -2.4, 11.5)),
    ((0.2, 0.2, 0.1), (-1.7, -2.6, 13.0)),
    ((-0.2, 0.25, -0.1), (-1.8, -2.3, 12.0)),
    ((0.25, -0.2, 0.05), (-1.6, -2.5, 12.5)),
    ((-0.25, -0.25, 0.0), (-1.75, -2.7, 11.8)),
    ((0.1, -0.15, 0.02), (-1.7, -2.45, 12.2)),
]


def synthetic_views(object_points: np.ndarray, poses=POSES) -> list[np.ndarray]:
    """Project the board through ``CAMERA_MATRIX`` for each pose."""
    views = []
    for rvec, tvec in poses:
        image_points, _ = cv2.projectPoints(
            object_points.astype(np.float64),
            np.array(rvec, dtype=np.float64),
            np.array(tvec, dtype=np.float64),
            CAMERA_MATRIX,
            np.zeros(5),
        )
        views.append(image_points.reshape(-1, 2).astype(np.float32))
    return views
