from noice.base import (
    AudioMode,
    BatchRenderer,
    CancellationToken,
    JobParams,
    NoiseTexturePool,
    ProgressRegistry,
    StreamingSession,
)

__all__ = [
    "AudioMode",
    "BatchRenderer",
    "CancellationToken",
    "JobParams",
    "NoiseTexturePool",
    "ProgressRegistry",
    "StreamingSession",
]
