import cv2
import numpy as np
import pytest

from procam_calib.calibration import (
    BoardSpec,
    CalibrationCancelled,
    CircleGridDetector,
    CollectorState,
    ConfigurationError,
    ObservationCollector,
    ProjectorPointExtractor,
    TriggerEvent,
    compute_object_points,
)

from ._fakes import ScriptedDetector, ScriptedFeedback, StaticCamera

BOARD = BoardSpec(4, 11, 0.5)


def _grid(offset: float = 0.0) -> np.ndarray:
    return compute_object_points(BOARD)[:, :2] * 40 + 30 + offset


def test_collect_retries_until_enough_observations():
    wrong = _grid()[:10]
    detector = ScriptedDetector([None, None, wrong, _grid(), _grid(5.0)])
    feedback = ScriptedFeedback()
    collector = ObservationCollector(StaticCamera(), feedback, BOARD, detector=detector)

    observations = collector.collect(2)

    assert collector.capture_attempts == 5
    assert detector.calls == 5
    assert collector.state is CollectorState.ACCEPTED
    assert len(observations) == 2
    assert all(o.shape == (44, 2) and o.dtype == np.float32 for o in observations)
    np.testing.assert_allclose(observations[0], _grid())
    np.testing.assert_allclose(observations[1], _grid(5.0))


def test_collect_reports_progress_in_overlay():
    feedback = ScriptedFeedback()
    collector = ObservationCollector(
        StaticCamera(), feedback, BOARD, detector=ScriptedDetector([None, _grid(), _grid()])
    )
    collector.collect(2)

    assert feedback.texts[0] == "Press <Enter> to capture pose\n0/2"
    assert feedback.texts[1] == "Press <Enter> to capture pose\n0/2"
    assert feedback.texts[-1] == "Press <Enter> to capture pose\n1/2"


def test_collect_waits_while_trigger_is_idle():
    camera = StaticCamera()
    feedback = ScriptedFeedback([TriggerEvent.IDLE, TriggerEvent.IDLE])
    collector = ObservationCollector(camera, feedback, BOARD, detector=ScriptedDetector([_grid()]))

    collector.collect(1)

    # Three preview frames plus the capture frame.
    assert feedback.images_shown == 3
    assert camera.frames_read == 4


def test_cancel_raises_and_marks_state():
    feedback = ScriptedFeedback([TriggerEvent.CONFIRM, TriggerEvent.IDLE, TriggerEvent.CANCEL])
    detector = ScriptedDetector([_grid()])
    collector = ObservationCollector(StaticCamera(), feedback, BOARD, detector=detector)

    with pytest.raises(CalibrationCancelled):
        collector.collect(3)

    assert collector.state is CollectorState.CANCELLED
    assert collector.capture_attempts == 1


def test_collect_rejects_non_positive_request():
    collector = ObservationCollector(
        StaticCamera(), ScriptedFeedback(), BOARD, detector=ScriptedDetector([])
    )
    with pytest.raises(ConfigurationError):
        collector.collect(0)
    assert collector.capture_attempts == 0


class _StubSampler:
    def __init__(self):
        self.white_flashes = 0
        self.sampled = []

    def project_white(self):
        self.white_flashes += 1

    def sample_projector_points(self, pixels):
        self.sampled.append(pixels)
        return (pixels * 2.0).astype(np.float32)


def test_projector_extractor_floods_white_and_samples():
    sampler = _StubSampler()
    collector = ObservationCollector(
        StaticCamera(),
        ScriptedFeedback(),
        BOARD,
        detector=ScriptedDetector([None, _grid()]),
        extractor=ProjectorPointExtractor(sampler),
    )

    observations = collector.collect(1)

    assert sampler.white_flashes == 2
    assert len(sampler.sampled) == 1
    np.testing.assert_allclose(observations[0], _grid() * 2.0)


def _render_circle_grid(spacing=25, radius=8, margin=50):
    image = np.full((375, 300), 255, dtype=np.uint8)
    centers = compute_object_points(BoardSpec(4, 11, spacing))[:, :2] + margin
    for x, y in centers:
        cv2.circle(image, (int(x), int(y)), radius, 0, -1, lineType=cv2.LINE_AA)
    return image, centers


def test_circle_grid_detector_finds_rendered_grid():
    image, centers = _render_circle_grid()
    detected = CircleGridDetector(BOARD)(image)

    assert detected is not None
    assert detected.shape == (44, 2)
    distances = np.linalg.norm(centers[:, np.newaxis, :] - detected[np.newaxis, :, :], axis=2)
    assert np.all(distances.min(axis=1) < 1.0)


def test_circle_grid_detector_returns_none_without_grid():
    blank = np.full((375, 300), 255, dtype=np.uint8)
    assert CircleGridDetector(BOARD)(blank) is None
