"""Compositing of the noise textures under a foreground mask."""

import cv2
import numpy as np

from noice.base.noise import NoiseTexturePool


class Compositor:
    """
    Paints a frame as the static noise texture with foreground regions shown
    through a rotating pool texture.
    """

    def __init__(self, dilate: bool = True, kernel_size: int = 3):
        """Initializes Compositor.

        Args:
            dilate: Grow the mask once before compositing. Nitro mode skips it for speed.
            kernel_size: Side of the rectangular structuring element used for dilation.
        """
        self.dilate = dilate
        self.kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (kernel_size, kernel_size))

    def apply(
        self,
        result: np.ndarray,
        pool: NoiseTexturePool,
        mask: np.ndarray,
        pool_index: int,
        dilated: np.ndarray | None = None,
    ) -> np.ndarray:
        """Composites into `result` in place.

        Args:
            result: Output buffer with the pool's shape.
            pool: Noise pool, its element 0 is the background texture.
            mask: Binary foreground mask. An all-zero mask leaves the plain background.
            pool_index: Index of the processed frame, selects `pool[pool_index mod N]`.
            dilated: Buffer for the grown mask, required when dilation is enabled.

        Returns:
            The `result` buffer.
        """
        np.copyto(result, pool.static)
        if not cv2.countNonZero(mask):
            return result

        if self.dilate:
            if dilated is None:
                raise ValueError("Dilation requires a `dilated` mask buffer!")
            cv2.dilate(mask, self.kernel, dst=dilated, iterations=1)
            mask = dilated

        cv2.copyTo(pool.frame_for(pool_index), mask, result)
        return result
