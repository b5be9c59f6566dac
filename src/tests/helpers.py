from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np

from noice.base.config import NoiceConfig
from noice.base.streaming import CancellationToken

SQUARE_SIZE = 20
SQUARE_STEP = 3

SMALL_POOL_CONFIG = NoiceConfig(pool_size=4)


def moving_square_frames(
    n_frames: int = 60,
    width: int = 100,
    height: int = 100,
    square: int = SQUARE_SIZE,
    step: int = SQUARE_STEP,
) -> list[np.ndarray]:
    """Black frames with a single white square moving right by `step` pixels per frame."""
    frames = []
    top = (height - square) // 2
    for i in range(n_frames):
        frame = np.zeros((height, width, 3), dtype=np.uint8)
        left = (i * step) % (width - square)
        frame[top : top + square, left : left + square] = 255
        frames.append(frame)
    return frames


def write_video(path: Path, frames: list[np.ndarray], fps: float = 30.0, fourcc: str = "MJPG") -> Path:
    height, width = frames[0].shape[:2]
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*fourcc), fps, (width, height))
    assert writer.isOpened()
    for frame in frames:
        writer.write(frame)
    writer.release()
    return path


def count_frames(path: Path) -> int:
    capture = cv2.VideoCapture(str(path))
    count = 0
    while True:
        ok, _ = capture.read()
        if not ok:
            break
        count += 1
    capture.release()
    return count


class FakeSource:
    """In-memory stand-in for `VideoSource`."""

    def __init__(
        self,
        frames: list[np.ndarray],
        fps: float = 30.0,
        frame_count: int | None = None,
        fail_at: int | None = None,
    ):
        self.frames = frames
        self.fps = fps
        self.height, self.width = frames[0].shape[:2]
        self.frame_count = len(frames) if frame_count is None else frame_count
        self.fail_at = fail_at
        self.position = 0
        self.release_calls = 0
        self.buffers_seen: set[int] = set()

    def read(self, buffer: np.ndarray | None = None) -> np.ndarray | None:
        if self.release_calls:
            return None
        if self.fail_at is not None and self.position == self.fail_at:
            raise RuntimeError("Corrupted frame")
        if self.position >= len(self.frames):
            return None
        frame = self.frames[self.position]
        self.position += 1
        if buffer is None:
            return frame.copy()
        self.buffers_seen.add(id(buffer))
        np.copyto(buffer, frame)
        return buffer

    def release(self) -> None:
        self.release_calls += 1


class FakeClock:
    """Clock that never sleeps: waits are recorded and advance virtual time."""

    def __init__(self, work_seconds: float = 0.0, cancel_after_waits: int | None = None):
        self.time = 0.0
        self.work_seconds = work_seconds
        self.cancel_after_waits = cancel_after_waits
        self.waits: list[float] = []

    def now(self) -> float:
        # consecutive readings are `work_seconds` apart, as if each frame took that long
        self.time += self.work_seconds
        return self.time

    def wait(self, seconds: float, token: CancellationToken) -> bool:
        self.waits.append(seconds)
        self.time += seconds
        if self.cancel_after_waits is not None and len(self.waits) >= self.cancel_after_waits:
            token.cancel()
        return token.cancelled
