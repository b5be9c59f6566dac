import cv2
import numpy as np
import pytest

from noice.base.exceptions import SourceOpenError
from noice.base.streaming import CancellationToken, Clock, SessionState, StreamingSession
from noice.base.video import JobParams
from tests.helpers import SMALL_POOL_CONFIG, FakeClock, FakeSource, moving_square_frames


def _session(source: FakeSource, params: JobParams | None = None, clock: FakeClock | None = None, token=None):
    return StreamingSession(
        "fake.mp4",
        params or JobParams(nitro=True),
        token=token,
        clock=clock or FakeClock(),
        config=SMALL_POOL_CONFIG,
        seed=0,
        source_opener=lambda _: source,
    )


def test_streams_every_frame_then_completes(square_frames):
    source = FakeSource(square_frames)
    session = _session(source)

    frames = list(session)

    assert len(frames) == len(square_frames)
    assert session.state == SessionState.COMPLETED
    assert session.decoded_frames == session.processed_frames == len(square_frames)


def test_frames_are_jpeg_at_target_size():
    source = FakeSource(moving_square_frames(n_frames=3))
    session = _session(source, JobParams(scale=0.5, nitro=True))

    for jpeg in session:
        assert jpeg[:2] == b"\xff\xd8"
        decoded = cv2.imdecode(np.frombuffer(jpeg, dtype=np.uint8), cv2.IMREAD_COLOR)
        assert decoded.shape == (50, 50, 3)


@pytest.mark.parametrize("speed, expected", [(2.0, 30), (3.0, 20), (2.4, 30), (1.5, 30), (0.5, 60)])
def test_speed_skips_decoded_frames(square_frames, speed: float, expected: int):
    source = FakeSource(square_frames)
    session = _session(source, JobParams(speed=speed, nitro=True))

    produced = sum(1 for _ in session)

    assert produced == expected
    assert session.decoded_frames == len(square_frames)


def test_pacing_waits_for_remaining_interval():
    source = FakeSource(moving_square_frames(n_frames=5), fps=25.0)
    clock = FakeClock(work_seconds=0.01)
    session = _session(source, JobParams(speed=2.0, nitro=True), clock=clock)

    list(session)

    interval = 1.0 / (25.0 * 2.0)
    assert session.frame_interval == pytest.approx(interval)
    # no wait before the first frame, one before each following kept frame and the final read
    assert len(clock.waits) == session.processed_frames
    assert clock.waits == pytest.approx([interval - 0.01] * len(clock.waits))


def test_no_wait_when_work_exceeds_interval():
    source = FakeSource(moving_square_frames(n_frames=5), fps=30.0)
    clock = FakeClock(work_seconds=1.0)
    session = _session(source, clock=clock)

    assert len(list(session)) == 5
    assert clock.waits == []


def test_first_frame_is_not_delayed():
    source = FakeSource(moving_square_frames(n_frames=2))
    clock = FakeClock()
    session = _session(source, clock=clock)

    next(session)
    assert clock.waits == []


def test_cancel_before_start_yields_nothing(square_frames):
    source = FakeSource(square_frames)
    token = CancellationToken()
    token.cancel()
    session = _session(source, token=token)

    assert list(session) == []
    assert session.state == SessionState.CANCELLED
    assert source.release_calls == 1
    assert session.decoded_frames == 0


def test_cancel_during_wait_stops_stream(square_frames):
    source = FakeSource(square_frames)
    clock = FakeClock(cancel_after_waits=2)
    session = _session(source, clock=clock)

    frames = list(session)

    assert len(frames) == 2
    assert session.state == SessionState.CANCELLED
    assert source.release_calls == 1


def test_cancel_between_frames(square_frames):
    source = FakeSource(square_frames)
    session = _session(source)

    next(session)
    next(session)
    session.cancel()

    with pytest.raises(StopIteration):
        next(session)
    assert session.state == SessionState.CANCELLED
    assert session.processed_frames == 2


def test_resources_released_once_after_completion():
    source = FakeSource(moving_square_frames(n_frames=4))
    session = _session(source)

    list(session)
    session.close()
    session.cancel()

    assert source.release_calls == 1
    assert session.state == SessionState.COMPLETED
    with pytest.raises(StopIteration):
        next(session)


def test_decoder_failure_ends_in_source_error(square_frames):
    source = FakeSource(square_frames, fail_at=3)
    session = _session(source)

    frames = []
    with pytest.raises(RuntimeError, match="Corrupted"):
        for jpeg in session:
            frames.append(jpeg)

    assert len(frames) == 3
    assert session.state == SessionState.SOURCE_ERROR
    assert source.release_calls == 1
    assert list(session) == []


def test_close_cancels_open_session(square_frames):
    source = FakeSource(square_frames)
    with _session(source) as session:
        next(session)

    assert session.state == SessionState.CANCELLED
    assert session.closed
    assert source.release_calls == 1


def test_frames_decode_into_one_buffer(square_frames):
    source = FakeSource(square_frames)
    list(_session(source))
    assert len(source.buffers_seen) == 1


def test_missing_file_raises(tmp_path):
    with pytest.raises(SourceOpenError):
        StreamingSession(tmp_path / "missing.mp4", JobParams(), config=SMALL_POOL_CONFIG)


def test_invalid_scale_releases_source():
    source = FakeSource(moving_square_frames(n_frames=2))
    with pytest.raises(ValueError):
        _session(source, JobParams(scale=0.001))
    assert source.release_calls == 1


def test_session_states():
    assert not SessionState.OPEN.is_closed
    assert not SessionState.STREAMING.is_closed
    assert SessionState.COMPLETED.is_closed
    assert SessionState.CANCELLED.is_closed
    assert SessionState.SOURCE_ERROR.is_closed


def test_clock_wait_returns_early_when_cancelled():
    token = CancellationToken()
    token.cancel()
    assert Clock().wait(10.0, token) is True
    assert Clock().wait(0.0, CancellationToken()) is False


def test_streaming_from_real_file(square_video):
    session = StreamingSession(square_video, JobParams(scale=0.5, speed=2.0), config=SMALL_POOL_CONFIG, seed=0)
    session.frame_interval = 0.0

    frames = list(session)

    assert abs(len(frames) - 30) <= 1
    assert session.state == SessionState.COMPLETED
