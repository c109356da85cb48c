"""Pipelines package for procam-calib."""

from procam_calib.pipelines.pipeline import ProCamCalibrationPipeline
from procam_calib.pipelines.schema import BoardConfig, FringeConfig, ProCamCalibrationConfig

__all__ = ["BoardConfig", "FringeConfig", "ProCamCalibrationConfig", "ProCamCalibrationPipeline"]
