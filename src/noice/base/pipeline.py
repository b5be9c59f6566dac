"""Per-frame resize, detection and compositing shared by the preview and render drivers."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import cv2
import numpy as np

from noice.base.compose import Compositor
from noice.base.config import NoiceConfig
from noice.base.detection import MotionDetector, create_detector
from noice.base.noise import NoiseTexturePool
from noice.base.video import JobParams

logger = logging.getLogger(__name__)


@dataclass
class ScratchBuffers:
    """Per-job arena of frame buffers, overwritten on every frame.

    `frame` has the source's native size, every other buffer the scaled target
    size. Dimensions never change during a job.
    """

    frame: np.ndarray
    resized: np.ndarray
    mask: np.ndarray
    dilated: np.ndarray
    result: np.ndarray

    @classmethod
    def allocate(cls, source_width: int, source_height: int, width: int, height: int) -> ScratchBuffers:
        return cls(
            frame=np.empty((source_height, source_width, 3), dtype=np.uint8),
            resized=np.empty((height, width, 3), dtype=np.uint8),
            mask=np.zeros((height, width), dtype=np.uint8),
            dilated=np.zeros((height, width), dtype=np.uint8),
            result=np.empty((height, width, 3), dtype=np.uint8),
        )

    @property
    def target_size(self) -> tuple[int, int]:
        """Returns (width, height) of the output frames."""
        return self.result.shape[1], self.result.shape[0]


class FramePipeline:
    """Resize -> detect -> composite for one job.

    Both the streaming and the batch driver feed decoded frames through
    `process`, which always writes into the same result buffer. Callers that
    keep a frame past the next `process` call must copy it.
    """

    def __init__(
        self,
        pool: NoiseTexturePool,
        detector: MotionDetector,
        compositor: Compositor,
        buffers: ScratchBuffers,
        interpolation: int = cv2.INTER_NEAREST,
    ):
        self.pool = pool
        self.detector = detector
        self.compositor = compositor
        self.buffers = buffers
        self.interpolation = interpolation
        self.pool_index = 0
        self._released = False

    @classmethod
    def build(
        cls,
        params: JobParams,
        source_width: int,
        source_height: int,
        config: NoiceConfig | None = None,
        seed: int | None = None,
        interpolation: int = cv2.INTER_NEAREST,
    ) -> FramePipeline:
        """Creates the pool, detector and buffers for a source of the given size."""
        config = config or NoiceConfig()
        width, height = params.target_size(source_width, source_height)
        pool = NoiseTexturePool.create(width, height, params.is_color, size=config.pool_size, seed=seed)
        detector = create_detector(params.nitro, width, height, config)
        compositor = Compositor(dilate=not params.nitro, kernel_size=config.dilate_kernel)
        buffers = ScratchBuffers.allocate(source_width, source_height, width, height)
        logger.debug(
            "Pipeline %dx%d -> %dx%d using %s", source_width, source_height, width, height, type(detector).__name__
        )
        return cls(pool, detector, compositor, buffers, interpolation=interpolation)

    @property
    def released(self) -> bool:
        return self._released

    def process(self, frame: np.ndarray) -> np.ndarray:
        """Turns one decoded frame into a composited frame.

        Returns:
            The shared result buffer.
        """
        if self._released:
            raise RuntimeError("Pipeline was already released!")
        buffers = self.buffers
        cv2.resize(frame, buffers.target_size, dst=buffers.resized, interpolation=self.interpolation)
        self.detector.apply(buffers.resized, buffers.mask)
        self.compositor.apply(buffers.result, self.pool, buffers.mask, self.pool_index, dilated=buffers.dilated)
        self.pool_index += 1
        return buffers.result

    def release(self) -> None:
        """Drops pool, buffers and detector state. Safe to call more than once."""
        if self._released:
            return
        self._released = True
        self.detector.release()
        self.pool = None  # type: ignore[assignment]
        self.buffers = None  # type: ignore[assignment]
