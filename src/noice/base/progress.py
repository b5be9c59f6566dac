from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, TypeVar

from tqdm import tqdm

from noice.base.exceptions import JobConflictError

__all__ = ["configure", "set_progress", "get_config", "progress_iter", "ProgressRegistry"]

T = TypeVar("T")


@dataclass
class _BaseConfig:
    progress: bool = False


_CONFIG = _BaseConfig()


def configure(*, progress: bool | None = None) -> None:
    """Configure progress bar behavior of render operations."""
    if progress is not None:
        _CONFIG.progress = bool(progress)


def set_progress(value: bool) -> None:
    """Enable or disable progress bars in render operations."""
    _CONFIG.progress = bool(value)


def get_config() -> _BaseConfig:
    """Return the current progress configuration."""
    return _CONFIG


def progress_iter(
    iterable: Iterable[T],
    *,
    desc: str | None = None,
    total: int | None = None,
) -> Iterable[T]:
    """Return an iterator with an optional progress bar."""
    if _CONFIG.progress:
        return tqdm(iterable, desc=desc, total=total if total and total > 0 else None)
    return iterable


class ProgressRegistry:
    """Thread-safe job id -> percentage map shared between renderers and pollers.

    A job is present only while it renders. Reading an unknown or finished job
    returns `None`, never a stale value.

    Example:
        >>> registry = ProgressRegistry()
        >>> with registry.track("out.mp4"):
        ...     registry.update("out.mp4", 42.0)
        ...     registry.get("out.mp4")
        42.0
        >>> registry.get("out.mp4") is None
        True
    """

    COMPLETE = 100.0

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: dict[str, float] = {}

    def begin(self, job_id: str) -> None:
        """Register a job at 0%.

        Raises:
            JobConflictError: If the job is already rendering.
        """
        with self._lock:
            if job_id in self._entries:
                raise JobConflictError(job_id)
            self._entries[job_id] = 0.0

    def update(self, job_id: str, percent: float) -> None:
        """Publish progress, keeping the stored value non-decreasing.

        Updates for jobs that are not registered are ignored.
        """
        percent = min(max(float(percent), 0.0), self.COMPLETE)
        with self._lock:
            current = self._entries.get(job_id)
            if current is not None and percent > current:
                self._entries[job_id] = percent

    def complete(self, job_id: str) -> None:
        with self._lock:
            if job_id in self._entries:
                self._entries[job_id] = self.COMPLETE

    def remove(self, job_id: str) -> None:
        with self._lock:
            self._entries.pop(job_id, None)

    def get(self, job_id: str) -> float | None:
        with self._lock:
            return self._entries.get(job_id)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @contextmanager
    def track(self, job_id: str) -> Iterator[str]:
        """Register the job for the duration of the block and always remove it afterwards."""
        self.begin(job_id)
        try:
            yield job_id
        finally:
            self.remove(job_id)
