"""Exception hierarchy for noice.base module."""


class NoiceError(Exception):
    """Base exception for all noice errors."""

    pass


class VideoError(NoiceError):
    """Base exception for video-related errors."""

    pass


class SourceOpenError(VideoError):
    """Raised when the input video cannot be opened for decoding."""

    def __init__(self, path: str):
        super().__init__(f"Failed to open video: {path}")
        self.path = path


class InvalidDimensionsError(VideoError, ValueError):
    """Raised when a target resolution collapses to zero or negative pixels."""

    def __init__(self, width: int, height: int):
        super().__init__(f"Invalid frame dimensions: {width}x{height}")
        self.width = width
        self.height = height


class RenderError(NoiceError):
    """Raised when the decode/detect/composite/write loop fails."""

    pass


class MuxingError(NoiceError):
    """Raised when ffmpeg fails to combine the rendered video with audio."""

    def __init__(self, message: str, stderr: str | None = None):
        super().__init__(message)
        self.stderr = stderr


class JobConflictError(NoiceError):
    """Raised when a render is started for a job that is already running."""

    def __init__(self, job_id: str):
        super().__init__(f"Job '{job_id}' is already rendering")
        self.job_id = job_id


class ConfigError(NoiceError):
    """Raised when there's an error loading or parsing configuration."""

    pass
