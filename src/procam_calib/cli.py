"""Command line entry point: ``procam-calibrate {camera,projector}``."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from pydantic import ValidationError

from procam_calib.calibration import CalibrationCancelled, CalibrationError, ConfigurationError
from procam_calib.pipelines import ProCamCalibrationConfig, ProCamCalibrationPipeline

logger = logging.getLogger("procam_calib")


def load_config(args: argparse.Namespace) -> ProCamCalibrationConfig:
    """Read the JSON config (if any) and apply command line overrides."""
    if args.config is not None:
        config = ProCamCalibrationConfig.model_validate_json(Path(args.config).read_text())
    else:
        config = ProCamCalibrationConfig()

    overrides = {
        "requested_samples": args.samples,
        "camera_index": args.camera,
        "projector_monitor": args.monitor,
        "projector_resolution": args.resolution,
        "output_path": None if args.out is None else str(args.out),
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        config = ProCamCalibrationConfig.model_validate({**config.model_dump(), **overrides})
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="procam-calibrate")
    parser.add_argument("mode", choices=["camera", "projector"], help="Device to calibrate.")
    parser.add_argument("--config", type=Path, default=None, help="JSON session configuration.")
    parser.add_argument("--samples", type=int, default=None, help="Board poses for the intrinsic solve.")
    parser.add_argument("--camera", type=int, default=None, help="OpenCV camera index.")
    parser.add_argument("--monitor", type=int, default=None, help="Projector monitor index.")
    parser.add_argument("--resolution", type=str, default=None, help="Projector WIDTHxHEIGHT.")
    parser.add_argument("--out", type=Path, default=None, help="Write the result to this JSON file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(name)s] %(levelname)s %(message)s",
    )

    try:
        config = load_config(args)
    except (ValidationError, ValueError, OSError) as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    pipeline = ProCamCalibrationPipeline(config)
    try:
        data = pipeline.run(args.mode)
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return 2
    except CalibrationCancelled:
        logger.warning("Calibration cancelled")
        return 1
    except (CalibrationError, OSError, RuntimeError) as e:
        logger.error("Calibration failed: %s", e)
        return 1

    print(f"Intrinsic matrix:\n{data.intrinsic_matrix}")
    print(f"Distortion: {data.distortion_coeffs}")
    print(f"Rotation: {data.rotation_vector}  Translation: {data.translation_vector}")
    print(f"Reprojection error: {data.reprojection_error:.4f}px")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
