"""Foreground (motion) detection producing binary masks."""

from __future__ import annotations

from abc import ABC, abstractmethod

import cv2
import numpy as np

from noice.base.config import NoiceConfig

__all__ = ["MotionDetector", "FrameDifference", "BackgroundModel", "create_detector"]

MASK_ON = 255


class MotionDetector(ABC):
    """Abstract per-job foreground detector.

    A detector owns the only state carried from one frame to the next. Masks
    are single-channel `uint8` images holding only 0 and 255.
    """

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height

    @abstractmethod
    def apply(self, frame: np.ndarray, mask: np.ndarray) -> np.ndarray:
        """Classify `frame` into `mask` and update the detector state.

        Args:
            frame: Resized BGR frame of shape (height, width, 3).
            mask: Preallocated (height, width) buffer receiving the result.

        Returns:
            The filled mask buffer.
        """
        pass

    def release(self) -> None:
        """Drop the state carried between frames."""
        pass


class FrameDifference(MotionDetector):
    """Nitro mode detector: absolute difference against the previous gray frame.

    The first frame has nothing to compare against: it only seeds the previous
    frame and yields an empty mask.
    """

    def __init__(self, width: int, height: int, threshold: int = 25):
        super().__init__(width, height)
        self.threshold = threshold
        self._previous = np.zeros((height, width), dtype=np.uint8)
        self._gray = np.empty((height, width), dtype=np.uint8)
        self._primed = False

    def apply(self, frame: np.ndarray, mask: np.ndarray) -> np.ndarray:
        if not self._primed:
            cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY, dst=self._previous)
            mask.fill(0)
            self._primed = True
            return mask

        cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY, dst=self._gray)
        cv2.absdiff(self._gray, self._previous, dst=mask)
        cv2.threshold(mask, self.threshold, MASK_ON, cv2.THRESH_BINARY, dst=mask)
        # Swap instead of copying, the old previous frame becomes next gray scratch
        self._previous, self._gray = self._gray, self._previous
        return mask

    def release(self) -> None:
        self._previous = None  # type: ignore[assignment]
        self._gray = None  # type: ignore[assignment]


class BackgroundModel(MotionDetector):
    """Default detector: adaptive Gaussian mixture background model (MOG2).

    Every frame is smoothed with a small Gaussian kernel before updating the
    model, which keeps sensor noise from registering as motion. The model keeps
    learning, so a mask depends on every earlier frame of the job.
    """

    def __init__(
        self,
        width: int,
        height: int,
        history: int = 300,
        var_threshold: float = 60.0,
        blur_kernel: int = 5,
    ):
        super().__init__(width, height)
        self.history = history
        self.var_threshold = var_threshold
        self.blur_kernel = blur_kernel
        self._subtractor = cv2.createBackgroundSubtractorMOG2(
            history=history, varThreshold=var_threshold, detectShadows=False
        )
        self._blurred = np.empty((height, width, 3), dtype=np.uint8)

    def apply(self, frame: np.ndarray, mask: np.ndarray) -> np.ndarray:
        cv2.GaussianBlur(frame, (self.blur_kernel, self.blur_kernel), 0, dst=self._blurred)
        foreground = self._subtractor.apply(self._blurred, fgmask=mask)
        cv2.threshold(foreground, MASK_ON // 2, MASK_ON, cv2.THRESH_BINARY, dst=mask)
        return mask

    def release(self) -> None:
        self._subtractor = None
        self._blurred = None  # type: ignore[assignment]


def create_detector(nitro: bool, width: int, height: int, config: NoiceConfig | None = None) -> MotionDetector:
    """Select the detector variant for a job."""
    config = config or NoiceConfig()
    if nitro:
        return FrameDifference(width, height, threshold=config.diff_threshold)
    return BackgroundModel(
        width,
        height,
        history=config.mog2_history,
        var_threshold=config.mog2_var_threshold,
        blur_kernel=config.blur_kernel,
    )
