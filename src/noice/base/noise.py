"""Pre-generated random noise textures."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

import cv2
import numpy as np

from noice.base.exceptions import InvalidDimensionsError

__all__ = ["NoiseTexturePool", "DEFAULT_POOL_SIZE"]

logger = logging.getLogger(__name__)

# Tens of frames are visually indistinguishable from hundreds and start much faster
DEFAULT_POOL_SIZE = 30


def _generate_noise_frame(
    seed: np.random.SeedSequence, width: int, height: int, is_color: bool
) -> np.ndarray:
    rng = np.random.default_rng(seed)
    if is_color:
        frame = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
    else:
        gray = rng.integers(0, 256, size=(height, width), dtype=np.uint8)
        frame = cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)
    frame.flags.writeable = False
    return frame


class NoiseTexturePool:
    """Fixed-size, ordered collection of independent noise frames.

    Element 0 doubles as the static texture that fills the whole frame before
    foreground regions are composited. Frames are read-only once generated.

    Example:
        >>> pool = NoiseTexturePool.create(64, 48, is_color=True, size=4, seed=0)
        >>> len(pool), pool[0].shape
        (4, (48, 64, 3))
        >>> pool.frame_for(5) is pool[1]
        True
    """

    def __init__(self, frames: tuple[np.ndarray, ...]):
        if not frames:
            raise ValueError("Noise pool must contain at least one frame!")
        self._frames = frames

    @classmethod
    def create(
        cls,
        width: int,
        height: int,
        is_color: bool = True,
        size: int = DEFAULT_POOL_SIZE,
        seed: int | None = None,
        max_workers: int | None = None,
    ) -> NoiseTexturePool:
        """Generate `size` noise frames concurrently.

        Each worker owns one destination slot and its own random stream spawned
        from a single seed sequence, so a fixed `seed` reproduces the pool
        regardless of scheduling.

        Args:
            width: Frame width in pixels.
            height: Frame height in pixels.
            is_color: Sample every channel independently if True, replicate one gray channel otherwise.
            size: Number of frames in the pool.
            seed: Optional seed for reproducible pools.
            max_workers: Thread pool size, defaults to the executor's choice.

        Raises:
            InvalidDimensionsError: If width or height is not positive.
            ValueError: If size is smaller than 1.
        """
        if width <= 0 or height <= 0:
            raise InvalidDimensionsError(width, height)
        if size < 1:
            raise ValueError(f"Pool size must be at least 1, got {size}!")

        logger.info("Generating noise pool: %d frames (%dx%d, color=%s)", size, width, height, is_color)
        seeds = np.random.SeedSequence(seed).spawn(size)
        frames: list[np.ndarray | None] = [None] * size

        def _fill(index: int) -> None:
            frames[index] = _generate_noise_frame(seeds[index], width, height, is_color)

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            # list() re-raises the first worker exception, if any
            list(executor.map(_fill, range(size)))

        logger.info("Noise pool ready")
        return cls(tuple(frames))  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._frames)

    def __getitem__(self, index: int) -> np.ndarray:
        return self._frames[index]

    def __iter__(self):
        return iter(self._frames)

    @property
    def static(self) -> np.ndarray:
        """Texture that replaces the whole background."""
        return self._frames[0]

    @property
    def shape(self) -> tuple[int, int, int]:
        return self._frames[0].shape  # type: ignore[return-value]

    def frame_for(self, index: int) -> np.ndarray:
        """Foreground texture for the `index`-th processed frame, cycling through the pool."""
        return self._frames[index % len(self._frames)]
