"""Calibration session wiring devices, engine and result output together."""

import json
import logging
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import numpy as np

from procam_calib.calibration import (
    CalibrationData,
    CalibrationEngine,
    FrameSource,
    PatternSink,
    UserFeedbackSink,
)
from procam_calib.calibration.devices import VideoCaptureCamera
from procam_calib.pipelines.schema import ProCamCalibrationConfig

logger = logging.getLogger(__name__)

MODES = ("camera", "projector")


class NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy arrays."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        return super().default(obj)


class ProCamCalibrationPipeline:
    """One calibration session.

    Devices that are not injected are opened from the configuration and
    released again when the session ends.

    Attributes:
        config: Session configuration
        status: Human-readable progress of the session
        result: Last successful calibration or None
    """

    def __init__(
        self,
        config: Optional[ProCamCalibrationConfig] = None,
        camera: Optional[FrameSource] = None,
        projector: Optional[PatternSink] = None,
        feedback: Optional[UserFeedbackSink] = None,
    ) -> None:
        self.config = config or ProCamCalibrationConfig()
        self.camera = camera
        self.projector = projector
        self.feedback = feedback
        self.result: Optional[CalibrationData] = None
        self.status = "Not calibrated"

        self._owned: List[Tuple[str, Callable[[], None]]] = []

    def _update_status(self, status: str) -> None:
        self.status = status
        logger.info(status)

    def _open_devices(self, mode: str) -> None:
        if self.camera is None:
            camera = VideoCaptureCamera(self.config.camera_index)
            self.camera = camera
            self._owned.append(("camera", camera.release))

        if mode == "projector" and self.projector is None:
            from procam_calib.calibration.display import ProjectorDisplay

            display = ProjectorDisplay()
            display.start_fullscreen(
                monitor_index=self.config.projector_monitor,
                resolution=self.config.parse_resolution(),
            )
            self.projector = display
            self._owned.append(("projector", display.stop))

        if self.feedback is None:
            from procam_calib.calibration.display import FeedbackWindow

            # Keep the projector window's event loop alive during trigger waits.
            on_poll = getattr(self.projector, "refresh", None) if mode == "projector" else None
            window = FeedbackWindow(
                poll_interval_ms=self.config.poll_interval_ms, on_poll=on_poll
            )
            self.feedback = window
            self._owned.append(("feedback", window.close))

    def _cleanup(self) -> None:
        for attribute, close in reversed(self._owned):
            close()
            setattr(self, attribute, None)
        self._owned = []

    def run(self, mode: str) -> CalibrationData:
        """Run a ``camera`` or ``projector`` calibration session."""
        if mode not in MODES:
            raise ValueError(f"Unknown calibration mode {mode!r}, expected one of {MODES}")

        try:
            self._open_devices(mode)
            engine = CalibrationEngine(
                self.config.board.to_spec(),
                self.feedback,
                fringe_settings=self.config.fringe.to_settings(),
            )

            self._update_status(
                f"{mode.capitalize()} calibration - show the board "
                f"{self.config.requested_samples}x, then once more for the pose"
            )
            if mode == "camera":
                data = engine.calibrate_camera(self.camera, self.config.requested_samples)
            else:
                data = engine.calibrate_projector(
                    self.camera, self.projector, self.config.requested_samples
                )
        except Exception as e:
            self._update_status(f"{mode.capitalize()} calibration failed: {e}")
            raise
        finally:
            self._cleanup()

        self.result = data
        self._update_status(
            f"{mode.capitalize()} calibration complete - error: {data.reprojection_error:.3f}px"
        )

        if self.config.output_path:
            self.save_result(data, self.config.output_path, mode)

        return data

    @staticmethod
    def save_result(data: CalibrationData, path: str, mode: str) -> str:
        """Write a calibration result to JSON."""
        filepath = Path(path)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        payload = {"device": mode, **data.to_dict()}
        with open(filepath, "w") as f:
            json.dump(payload, f, indent=2, cls=NumpyEncoder)

        logger.info("Saved %s calibration to %s", mode, filepath)
        return str(filepath)
