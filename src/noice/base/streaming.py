"""Rate-paced, cancellable preview stream of JPEG frames."""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator

import cv2
import numpy as np

from noice.base.config import NoiceConfig, get_config
from noice.base.exceptions import RenderError
from noice.base.pipeline import FramePipeline
from noice.base.video import JobParams, VideoSource

__all__ = ["SessionState", "CancellationToken", "Clock", "StreamingSession"]

logger = logging.getLogger(__name__)


class SessionState(Enum):
    OPEN = "open"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    SOURCE_ERROR = "source_error"

    @property
    def is_closed(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.CANCELLED, SessionState.SOURCE_ERROR)


class CancellationToken:
    """Flag checked by a session between frames, settable from any thread."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Block up to `timeout` seconds, returns True as soon as cancellation is requested."""
        return self._event.wait(timeout)


class Clock:
    """Wall clock used for pacing. Tests substitute a fake one."""

    def now(self) -> float:
        return time.monotonic()

    def wait(self, seconds: float, token: CancellationToken) -> bool:
        """Sleep for `seconds` unless cancelled first. Returns True if cancelled."""
        return token.wait(seconds)


class StreamingSession:
    """Lazy sequence of composited JPEG frames paced at the source's playback rate.

    Each `next()` call waits out the rest of the previous frame's interval,
    decodes until it finds a frame to keep (with `speed > 1` only every
    `round(speed)`-th decoded frame is processed), runs detection and
    compositing, and returns the encoded bytes.

    Cancellation is observed between frames and during the pacing wait, never
    in the middle of processing a frame. Reaching a terminal state (completed,
    cancelled or source error) releases the source and every buffer exactly once.

    Example:
        >>> token = CancellationToken()
        >>> with StreamingSession("input.mp4", JobParams(scale=0.5), token=token) as session:
        ...     for jpeg in session:
        ...         send(jpeg)
    """

    def __init__(
        self,
        source_path: str | Path,
        params: JobParams,
        *,
        token: CancellationToken | None = None,
        clock: Clock | None = None,
        config: NoiceConfig | None = None,
        seed: int | None = None,
        source_opener: Callable[[str | Path], VideoSource] | None = None,
    ):
        config = config or get_config()
        opener = source_opener or (lambda path: VideoSource(path, default_fps=config.default_fps))

        self.params = params
        self._token = token or CancellationToken()
        self._clock = clock or Clock()
        self._source = opener(source_path)
        try:
            self._pipeline = FramePipeline.build(
                params,
                self._source.width,
                self._source.height,
                config,
                seed=seed,
                interpolation=cv2.INTER_NEAREST,
            )
        except BaseException:
            self._source.release()
            raise

        self.frame_interval = 1.0 / (self._source.fps * params.speed)
        self.skip_factor = params.skip_factor
        self._jpeg_params = [cv2.IMWRITE_JPEG_QUALITY, config.stream_jpeg_quality]
        self._last_work_seconds: float | None = None
        self.decoded_frames = 0
        self.processed_frames = 0
        self.state = SessionState.OPEN

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def closed(self) -> bool:
        return self.state.is_closed

    def cancel(self) -> None:
        """Request cancellation, honoured at the next frame boundary."""
        self._token.cancel()

    def __iter__(self) -> Iterator[bytes]:
        return self

    def __next__(self) -> bytes:
        if self.closed:
            raise StopIteration
        if self._token.cancelled or not self._pace():
            self._finish(SessionState.CANCELLED)
            raise StopIteration

        self.state = SessionState.STREAMING
        try:
            jpeg = self._produce()
        except Exception:
            self._finish(SessionState.SOURCE_ERROR)
            raise

        if jpeg is None:
            raise StopIteration
        return jpeg

    def _pace(self) -> bool:
        """Wait out the rest of the previous frame's interval. Returns False if cancelled meanwhile."""
        if self._last_work_seconds is None:
            return True
        remaining = self.frame_interval - self._last_work_seconds
        if remaining <= 0:
            return True
        return not self._clock.wait(remaining, self._token)

    def _read_kept_frame(self) -> np.ndarray | None:
        buffers = self._pipeline.buffers
        while True:
            if self._token.cancelled:
                self._finish(SessionState.CANCELLED)
                return None
            frame = self._source.read(buffers.frame)
            if frame is None:
                self._finish(SessionState.COMPLETED)
                return None
            self.decoded_frames += 1
            if self.skip_factor > 1 and self.decoded_frames % self.skip_factor != 0:
                continue
            return frame

    def _produce(self) -> bytes | None:
        started = self._clock.now()
        frame = self._read_kept_frame()
        if frame is None:
            return None

        result = self._pipeline.process(frame)
        ok, encoded = cv2.imencode(".jpg", result, self._jpeg_params)
        if not ok:
            raise RenderError("JPEG encoding of preview frame failed")

        self.processed_frames += 1
        self._last_work_seconds = self._clock.now() - started
        return encoded.tobytes()

    def _finish(self, state: SessionState) -> None:
        if self.closed:
            return
        self.state = state
        self._source.release()
        self._pipeline.release()
        logger.info(
            "Stream %s after %d decoded / %d processed frames",
            state.value,
            self.decoded_frames,
            self.processed_frames,
        )

    def close(self) -> None:
        """Stop the session, treating an unfinished stream as cancelled."""
        self._finish(SessionState.CANCELLED)

    def __enter__(self) -> StreamingSession:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
