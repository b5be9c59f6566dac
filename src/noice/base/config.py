"""Configuration loader for noice.base module."""

from __future__ import annotations

import warnings
from dataclasses import dataclass, fields, replace
from functools import lru_cache
from pathlib import Path
from typing import Any

import tomllib

from noice.base.exceptions import ConfigError

__all__ = ["NoiceConfig", "get_config", "load_config", "clear_config_cache"]


@dataclass(frozen=True)
class NoiceConfig:
    """Tunable constants of the noise pipeline.

    Attributes:
        pool_size: Number of pre-generated noise frames cycled through the foreground.
        diff_threshold: Gray-level difference above which a pixel counts as moving (nitro).
        mog2_history: Background model history window in frames.
        mog2_var_threshold: Squared Mahalanobis distance threshold of the background model.
        blur_kernel: Side of the Gaussian kernel applied before the background model.
        dilate_kernel: Side of the rectangular element used to grow the foreground mask.
        stream_jpeg_quality: JPEG quality of preview frames.
        progress_every: Render progress is published every this many frames.
        default_fps: Frame rate assumed when the container reports none.
        fallback_audio_seconds: Noise track length used when probing the video fails.
        noise_sample_rate: Sample rate of synthesized noise audio.
        ffmpeg: ffmpeg executable.
        ffprobe: ffprobe executable.
    """

    pool_size: int = 30
    diff_threshold: int = 25
    mog2_history: int = 300
    mog2_var_threshold: float = 60.0
    blur_kernel: int = 5
    dilate_kernel: int = 3
    stream_jpeg_quality: int = 70
    progress_every: int = 30
    default_fps: float = 30.0
    fallback_audio_seconds: float = 60.0
    noise_sample_rate: int = 44100
    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"

    def __post_init__(self):
        if self.pool_size < 1:
            raise ConfigError("pool_size must be at least 1")
        if self.blur_kernel < 1 or self.blur_kernel % 2 == 0:
            raise ConfigError("blur_kernel must be a positive odd number")
        if self.dilate_kernel < 1:
            raise ConfigError("dilate_kernel must be positive")
        if not 0 <= self.stream_jpeg_quality <= 100:
            raise ConfigError("stream_jpeg_quality must be in range [0, 100]")
        if self.progress_every < 1:
            raise ConfigError("progress_every must be at least 1")
        if self.default_fps <= 0:
            raise ConfigError("default_fps must be positive")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NoiceConfig:
        """Build config from a parsed `[tool.noice]` table, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown noice config keys: {', '.join(unknown)}")
        return cls(**data)

    def override(self, **changes: Any) -> NoiceConfig:
        return replace(self, **changes)


def _find_config_file(directory: Path | None = None) -> Path | None:
    """Find the configuration file in the given (or current) directory.

    Looks for:
    1. noice.toml
    2. pyproject.toml
    """
    cwd = directory or Path.cwd()

    noice_toml = cwd / "noice.toml"
    if noice_toml.exists():
        return noice_toml

    pyproject_toml = cwd / "pyproject.toml"
    if pyproject_toml.exists():
        return pyproject_toml

    return None


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _extract_config(data: dict[str, Any], filename: str) -> dict[str, Any]:
    if filename == "noice.toml":
        return data
    elif filename == "pyproject.toml":
        return data.get("tool", {}).get("noice", {})
    return {}


def load_config(directory: Path | None = None) -> NoiceConfig:
    """Load configuration from `noice.toml` or `pyproject.toml`.

    Unreadable or malformed files produce a warning and the defaults.

    Raises:
        ConfigError: If the config section holds unknown keys or invalid values.
    """
    config_path = _find_config_file(directory)
    if config_path is None:
        return NoiceConfig()

    try:
        data = _load_toml(config_path)
    except tomllib.TOMLDecodeError as e:
        warnings.warn(f"Invalid TOML in config file {config_path}: {e}", RuntimeWarning)
        return NoiceConfig()
    except OSError as e:
        warnings.warn(f"Cannot read config file {config_path}: {e}", RuntimeWarning)
        return NoiceConfig()

    return NoiceConfig.from_dict(_extract_config(data, config_path.name))


@lru_cache(maxsize=1)
def _get_cached_config() -> NoiceConfig:
    return load_config()


def get_config() -> NoiceConfig:
    """Get the current configuration."""
    return _get_cached_config()


def clear_config_cache() -> None:
    """Clear the configuration cache (useful for testing)."""
    _get_cached_config.cache_clear()
