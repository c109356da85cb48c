import json

import numpy as np
import pytest

from procam_calib import cli
from procam_calib.calibration import (
    CalibrationCancelled,
    CalibrationData,
    ConfigurationError,
    DeviceError,
    SolverFailure,
)
from procam_calib.pipelines import ProCamCalibrationPipeline
from procam_calib.pipelines import pipeline as pipeline_module


def test_overrides_apply_on_top_of_config_file(tmp_path):
    path = tmp_path / "session.json"
    path.write_text(
        json.dumps(
            {
                "requested_samples": 6,
                "board": {"markers_per_row": 3},
                "fringe": {"wavelengths": [70, 72]},
            }
        )
    )

    args = cli.build_parser().parse_args(
        ["projector", "--config", str(path), "--resolution", "1280x800", "--out", "res.json"]
    )
    config = cli.load_config(args)

    assert config.requested_samples == 6
    assert config.board.markers_per_row == 3
    assert config.parse_resolution() == (1280, 800)
    assert config.output_path == "res.json"


def test_invalid_configuration_exits_with_2(tmp_path):
    assert cli.main(["camera", "--samples", "0"]) == 2
    assert cli.main(["camera", "--config", str(tmp_path / "missing.json")]) == 2
    assert cli.main(["projector", "--resolution", "big"]) == 2


def _run_raising(exc):
    def run(self, mode):
        raise exc

    return run


@pytest.mark.parametrize(
    "exc,code",
    [
        (CalibrationCancelled("bye"), 1),
        (SolverFailure("degenerate"), 1),
        (ConfigurationError("bad board"), 2),
        (DeviceError("Cannot open camera #0"), 1),
        (OSError("No space left on device"), 1),
        (RuntimeError("display vanished"), 1),
    ],
)
def test_session_errors_map_to_exit_codes(monkeypatch, exc, code):
    monkeypatch.setattr(ProCamCalibrationPipeline, "run", _run_raising(exc))
    assert cli.main(["camera"]) == code


def test_successful_session_prints_result(monkeypatch, capsys):
    data = CalibrationData(
        np.eye(3),
        np.zeros(5),
        (640, 480),
        reprojection_error=0.125,
        rotation_vector=np.zeros(3),
        translation_vector=np.ones(3),
    )
    monkeypatch.setattr(ProCamCalibrationPipeline, "run", lambda self, mode: data)

    assert cli.main(["camera", "--samples", "5"]) == 0
    assert "Reprojection error: 0.1250px" in capsys.readouterr().out


def test_unavailable_camera_exits_with_1(monkeypatch):
    def no_camera(index):
        raise DeviceError(f"Cannot open camera #{index}")

    monkeypatch.setattr(pipeline_module, "VideoCaptureCamera", no_camera)
    assert cli.main(["camera"]) == 1


def test_wide_projector_with_default_wavelengths_exits_with_2():
    assert cli.main(["projector", "--resolution", "1920x1080"]) == 2
