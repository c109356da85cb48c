"""Camera, projector and operator-feedback collaborators."""

from enum import Enum
from typing import Callable, Optional, Protocol

import cv2
import numpy as np
import torch

from procam_calib.calibration.errors import DeviceError


class TriggerEvent(Enum):
    """Result of one trigger poll."""

    IDLE = "idle"
    CONFIRM = "confirm"
    CANCEL = "cancel"


class FrameSource(Protocol):
    """Camera returning a fresh frame on every call."""

    def get_frame(self) -> np.ndarray: ...

    def get_width(self) -> int: ...

    def get_height(self) -> int: ...


class PatternSink(Protocol):
    """Projector showing full-screen images."""

    def project_image(self, image: np.ndarray) -> None: ...

    def get_width(self) -> int: ...

    def get_height(self) -> int: ...


class UserFeedbackSink(Protocol):
    """Preview window and operator input.

    ``poll_trigger`` blocks for one polling tick and reports what the operator
    did during it.
    """

    def show_image(self, image: np.ndarray) -> None: ...

    def overlay_text(self, text: str) -> None: ...

    def poll_trigger(self) -> TriggerEvent: ...


def to_intensity(frame: np.ndarray) -> np.ndarray:
    """Convert a BGR, BGRA or gray frame to a single-channel image."""
    if frame.ndim == 2:
        return frame
    if frame.ndim == 3 and frame.shape[2] == 1:
        return frame[:, :, 0]
    if frame.ndim == 3 and frame.shape[2] == 3:
        return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
    if frame.ndim == 3 and frame.shape[2] == 4:
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)
    raise ValueError(f"Unsupported frame shape {frame.shape}")


class VideoCaptureCamera:
    """OpenCV ``VideoCapture`` device as a frame source."""

    def __init__(self, index: int = 0, warmup_frames: int = 5):
        """Open camera.

        Args:
            index: OpenCV device index
            warmup_frames: Frames discarded after opening (auto exposure)
        """
        self.capture = cv2.VideoCapture(index)
        if not self.capture.isOpened():
            raise DeviceError(f"Cannot open camera #{index}")

        for _ in range(warmup_frames):
            self.capture.read()

    def get_frame(self) -> np.ndarray:
        ok, frame = self.capture.read()
        if not ok or frame is None:
            raise DeviceError("Camera returned no frame")
        return frame

    def get_width(self) -> int:
        return int(self.capture.get(cv2.CAP_PROP_FRAME_WIDTH))

    def get_height(self) -> int:
        return int(self.capture.get(cv2.CAP_PROP_FRAME_HEIGHT))

    def release(self) -> None:
        self.capture.release()


class TensorFrameCamera:
    """Frame source fed by RGB video tensors.

    Accepts the (T, H, W, C) or (H, W, C) uint8-range tensors video pipelines
    hand around and converts them to BGR numpy frames.
    """

    def __init__(self, read_tensor: Callable[[], torch.Tensor]):
        """Initialize source.

        Args:
            read_tensor: Callable returning the latest video tensor
        """
        self.read_tensor = read_tensor
        self._last_shape: Optional[tuple] = None

    def get_frame(self) -> np.ndarray:
        video = self.read_tensor()
        frame = video[0] if video.dim() == 4 else video

        frame_np = frame.detach().cpu().numpy()
        if frame_np.dtype != np.uint8:
            frame_np = np.clip(frame_np, 0, 255).astype(np.uint8)

        self._last_shape = frame_np.shape[:2]
        if frame_np.ndim == 3 and frame_np.shape[2] == 3:
            return cv2.cvtColor(frame_np, cv2.COLOR_RGB2BGR)
        return frame_np

    def _shape(self) -> tuple:
        if self._last_shape is None:
            self.get_frame()
        return self._last_shape

    def get_width(self) -> int:
        return int(self._shape()[1])

    def get_height(self) -> int:
        return int(self._shape()[0])
