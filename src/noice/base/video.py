from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np

from noice.base.audio import AudioMode
from noice.base.exceptions import InvalidDimensionsError, SourceOpenError

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30.0


@dataclass
class VideoMetadata:
    """Class to store video metadata."""

    height: int
    width: int
    fps: float
    frame_count: int

    def __str__(self) -> str:
        return f"{self.width}x{self.height} @ {self.fps}fps, ~{self.frame_count} frames"

    def __repr__(self) -> str:
        return self.__str__()

    def get_frame_shape(self) -> tuple[int, int, int]:
        """Returns frame shape."""
        return (self.height, self.width, 3)


class VideoSource:
    """Opened decoding handle over an input video.

    Frames are BGR `uint8` arrays as produced by OpenCV. The handle is owned by a
    single pipeline driver and must be released when the job ends; `release` is
    safe to call more than once.
    """

    def __init__(self, path: str | Path, default_fps: float = DEFAULT_FPS):
        self.path = Path(path)
        self._capture: cv2.VideoCapture | None = cv2.VideoCapture(str(self.path))
        if not self._capture.isOpened():
            self._capture.release()
            self._capture = None
            raise SourceOpenError(str(self.path))

        fps = self._capture.get(cv2.CAP_PROP_FPS)
        self.metadata = VideoMetadata(
            height=int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            width=int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
            fps=fps if fps > 0 else default_fps,
            frame_count=int(self._capture.get(cv2.CAP_PROP_FRAME_COUNT)),
        )
        logger.debug("Opened %s: %s", self.path, self.metadata)

    @property
    def fps(self) -> float:
        return self.metadata.fps

    @property
    def width(self) -> int:
        return self.metadata.width

    @property
    def height(self) -> int:
        return self.metadata.height

    @property
    def frame_count(self) -> int:
        return self.metadata.frame_count

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def read(self, buffer: np.ndarray | None = None) -> np.ndarray | None:
        """Decode the next frame, into `buffer` when its shape matches.

        Returns:
            The decoded frame, or None once the source is exhausted or released.
        """
        if self._capture is None:
            return None
        ok, frame = self._capture.read(buffer)
        if not ok or frame is None or frame.size == 0:
            return None
        return frame

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.debug("Released %s", self.path)

    def __enter__(self) -> VideoSource:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


@dataclass(frozen=True)
class JobParams:
    """Parameters of a single preview or render job.

    Attributes:
        scale: Factor applied to both source dimensions, truncated to whole pixels.
        is_color: Three-channel color noise if True, gray noise replicated to 3 channels otherwise.
        speed: Playback multiplier. Values above 1 make the preview skip frames.
        nitro: Use cheap frame differencing instead of the background model.
        audio_mode: Audio track of rendered files.
    """

    scale: float = 1.0
    is_color: bool = True
    speed: float = 1.0
    nitro: bool = False
    audio_mode: AudioMode = AudioMode.MUTE

    def __post_init__(self):
        if not self.scale > 0:
            raise ValueError(f"Scale must be positive, got {self.scale}!")
        if not self.speed > 0:
            raise ValueError(f"Speed must be positive, got {self.speed}!")
        # Accept plain strings like "white" coming from query strings or the CLI
        object.__setattr__(self, "audio_mode", AudioMode(self.audio_mode))

    @property
    def skip_factor(self) -> int:
        """Only every `skip_factor`-th decoded frame is processed while previewing."""
        return max(round(self.speed), 1) if self.speed > 1 else 1

    def target_size(self, width: int, height: int) -> tuple[int, int]:
        """Returns the scaled (width, height) of a source frame.

        Raises:
            InvalidDimensionsError: If scaling leaves no pixels in either dimension.
        """
        target_width = int(width * self.scale)
        target_height = int(height * self.scale)
        if target_width <= 0 or target_height <= 0:
            raise InvalidDimensionsError(target_width, target_height)
        return target_width, target_height
