import logging

import numpy as np
import pytest

from procam_calib.calibration import (
    ConfigurationError,
    CorrespondenceSampler,
    FringeOrientation,
    FringeSettings,
    phase_to_projector_coordinate,
)
from procam_calib.calibration.correspondence import sample_field

from ._fakes import MirrorCamera, RecordingProjector, StaticCamera

FAST = FringeSettings(settle_seconds=0.0)


def test_phase_to_projector_coordinate():
    pitch = 70.0
    phase = np.array([0.0, np.pi, 2 * np.pi * 10])
    np.testing.assert_allclose(
        phase_to_projector_coordinate(phase, 0.0, pitch),
        [1.0, 36.0, 701.0],
    )
    np.testing.assert_allclose(
        phase_to_projector_coordinate(phase, np.pi, pitch, coordinate_offset=0.0),
        [-35.0, 0.0, 665.0],
    )


def test_projector_pitch_defaults_to_fine_wavelength():
    assert FringeSettings().projector_pitch == 70.0
    assert FringeSettings(wavelengths=(90.0, 84.0)).projector_pitch == 84.0
    assert FringeSettings(pitch=64.0).projector_pitch == 64.0


def test_sample_field_is_bilinear():
    yy, xx = np.mgrid[0:20, 0:30]
    field = 2.0 * xx + 3.0 * yy
    points = np.array([[0.0, 0.0], [10.5, 4.25], [28.9, 18.1]])
    np.testing.assert_allclose(sample_field(field, points), 2 * points[:, 0] + 3 * points[:, 1])


def test_sample_field_clamps_outside_points():
    field = np.arange(12, dtype=np.float64).reshape(3, 4)
    points = np.array([[-5.0, -5.0], [10.0, 10.0]])
    np.testing.assert_allclose(sample_field(field, points), [0.0, 11.0])


def test_sampler_maps_camera_pixels_to_projector_pixels():
    projector = RecordingProjector(320, 240)
    sampler = CorrespondenceSampler(MirrorCamera(projector), projector, FAST)

    markers = np.array([[0.0, 0.0], [12.0, 200.0], [160.5, 120.25], [319.0, 239.0]], dtype=np.float32)
    projector_points = sampler.sample_projector_points(markers)

    assert projector_points.shape == (4, 2)
    assert projector_points.dtype == np.float32
    np.testing.assert_allclose(projector_points, markers + 1.0, atol=0.15)


def test_sampler_projection_sequence():
    projector = RecordingProjector(320, 240)
    sampler = CorrespondenceSampler(MirrorCamera(projector), projector, FAST)
    sampler.sample_projector_points(np.array([[50.0, 60.0]]))

    # White flood plus two wavelengths of five steps, per axis.
    assert len(projector.images) == 22
    for index in (0, 11):
        assert projector.images[index].shape == (240, 320, 3)
        assert np.all(projector.images[index] == 255)
    horizontal = projector.images[1]
    vertical = projector.images[12]
    assert np.all(horizontal == horizontal[:1, :])
    assert np.all(vertical == vertical[:, :1])


def test_fringe_sets_are_cached():
    projector = RecordingProjector(64, 48)
    sampler = CorrespondenceSampler(MirrorCamera(projector), projector, FAST)

    first = sampler.fringe_sets(FringeOrientation.HORIZONTAL)
    assert sampler.fringe_sets(FringeOrientation.HORIZONTAL) is first
    assert len(first) == 2 and len(first[0]) == 5
    assert first[0][0].shape == (48, 64)


@pytest.mark.parametrize("size", [(1920, 240), (320, 1200)])
def test_sampler_rejects_projector_wider_than_beat(size):
    projector = RecordingProjector(*size)
    with pytest.raises(ConfigurationError, match="does not cover"):
        CorrespondenceSampler(MirrorCamera(projector), projector, FAST)
    assert projector.images == []


def test_closer_wavelengths_resolve_wide_projector():
    projector = RecordingProjector(1920, 16)
    settings = FringeSettings(wavelengths=(70.0, 72.0), settle_seconds=0.0)
    sampler = CorrespondenceSampler(MirrorCamera(projector), projector, settings)

    markers = np.array([[100.0, 8.0], [1100.0, 8.0], [1800.0, 8.0]])
    projector_points = sampler.sample_projector_points(markers)
    np.testing.assert_allclose(projector_points[:, 0], markers[:, 0] + 1.0, atol=0.15)


@pytest.mark.parametrize("pitch", [0.0, -70.0])
def test_sampler_rejects_non_positive_pitch(pitch):
    projector = RecordingProjector()
    with pytest.raises(ConfigurationError, match="pitch"):
        CorrespondenceSampler(MirrorCamera(projector), projector, FringeSettings(pitch=pitch))


def test_sampler_warns_on_weak_modulation(caplog):
    projector = RecordingProjector(320, 240)
    sampler = CorrespondenceSampler(StaticCamera(320, 240), projector, FAST)

    with caplog.at_level(logging.WARNING, logger="procam_calib.calibration.correspondence"):
        sampler.sample_projector_points(np.array([[10.0, 10.0], [20.0, 30.0]]))

    assert any("weak horizontal fringe modulation" in r.getMessage() for r in caplog.records)
    assert any("weak vertical fringe modulation" in r.getMessage() for r in caplog.records)


@pytest.mark.parametrize(
    "settings",
    [FringeSettings(wavelengths=(70.0, 70.0)), FringeSettings(step_count=2)],
)
def test_sampler_rejects_invalid_settings(settings):
    projector = RecordingProjector()
    with pytest.raises(ConfigurationError):
        CorrespondenceSampler(MirrorCamera(projector), projector, settings)
