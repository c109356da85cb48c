"""Projector-camera calibration with phase-shifted structured light."""

from procam_calib.calibration.collector import (
    CameraPointExtractor,
    CircleGridDetector,
    CollectorState,
    ObservationCollector,
    ProjectorPointExtractor,
)
from procam_calib.calibration.correspondence import (
    CorrespondenceSampler,
    FringeSettings,
    phase_to_projector_coordinate,
)
from procam_calib.calibration.devices import (
    FrameSource,
    PatternSink,
    TriggerEvent,
    UserFeedbackSink,
)
from procam_calib.calibration.engine import CalibrationEngine
from procam_calib.calibration.errors import (
    CalibrationCancelled,
    CalibrationError,
    ConfigurationError,
    DeviceError,
    SolverFailure,
)
from procam_calib.calibration.estimator import CalibrationData, CalibrationEstimator
from procam_calib.calibration.fringe import (
    FringeOrientation,
    HeterodyneUnwrapper,
    generate_fringe,
    wrap_phase,
)
from procam_calib.calibration.geometry import BoardSpec, compute_object_points

__all__ = [
    "BoardSpec",
    "CalibrationCancelled",
    "CalibrationData",
    "CalibrationEngine",
    "CalibrationError",
    "CalibrationEstimator",
    "CameraPointExtractor",
    "CircleGridDetector",
    "CollectorState",
    "ConfigurationError",
    "CorrespondenceSampler",
    "DeviceError",
    "FrameSource",
    "FringeOrientation",
    "FringeSettings",
    "HeterodyneUnwrapper",
    "ObservationCollector",
    "PatternSink",
    "ProjectorPointExtractor",
    "SolverFailure",
    "TriggerEvent",
    "UserFeedbackSink",
    "compute_object_points",
    "generate_fringe",
    "phase_to_projector_coordinate",
    "wrap_phase",
]
