from .audio import AudioMode, AudioMuxer, AudioSpec, FFmpegEncoder
from .compose import Compositor
from .config import NoiceConfig, get_config, load_config
from .detection import BackgroundModel, FrameDifference, MotionDetector, create_detector
from .exceptions import (
    ConfigError,
    InvalidDimensionsError,
    JobConflictError,
    MuxingError,
    NoiceError,
    RenderError,
    SourceOpenError,
    VideoError,
)
from .noise import NoiseTexturePool
from .pipeline import FramePipeline, ScratchBuffers
from .progress import ProgressRegistry, configure, set_progress
from .render import BatchRenderer
from .streaming import CancellationToken, Clock, SessionState, StreamingSession
from .video import JobParams, VideoMetadata, VideoSource

__all__ = [
    # Core
    "VideoSource",
    "VideoMetadata",
    "JobParams",
    # Pipeline
    "NoiseTexturePool",
    "MotionDetector",
    "FrameDifference",
    "BackgroundModel",
    "create_detector",
    "Compositor",
    "ScratchBuffers",
    "FramePipeline",
    # Drivers
    "StreamingSession",
    "SessionState",
    "CancellationToken",
    "Clock",
    "BatchRenderer",
    # Audio
    "AudioMode",
    "AudioSpec",
    "AudioMuxer",
    "FFmpegEncoder",
    # Progress
    "ProgressRegistry",
    "configure",
    "set_progress",
    # Configuration
    "NoiceConfig",
    "get_config",
    "load_config",
    # Exceptions
    "NoiceError",
    "VideoError",
    "SourceOpenError",
    "InvalidDimensionsError",
    "RenderError",
    "MuxingError",
    "JobConflictError",
    "ConfigError",
]
