"""Audio remux of rendered (silent) videos through ffmpeg."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from noice.base.config import NoiceConfig
from noice.base.exceptions import MuxingError

__all__ = ["AudioMode", "AudioSpec", "FFmpegEncoder", "AudioMuxer"]

logger = logging.getLogger(__name__)


class AudioMode(str, Enum):
    MUTE = "mute"
    ORIGINAL = "original"
    WHITE = "white"
    BROWN = "brown"


# ffmpeg's anoisesrc color used for each synthetic mode
NOISE_COLORS: dict[AudioMode, str] = {
    AudioMode.WHITE: "white",
    AudioMode.BROWN: "pink",
}


@dataclass(frozen=True)
class AudioSpec:
    """Audio track to attach to a silent video.

    Attributes:
        mode: Kind of audio track.
        source_path: Video whose audio is reused, required for `original`.
        duration: Seconds of synthetic noise, required for `white` and `brown`.
    """

    mode: AudioMode
    source_path: Path | None = None
    duration: float | None = None


class FFmpegEncoder:
    """Thin wrapper over the ffmpeg and ffprobe executables."""

    def __init__(self, ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe", sample_rate: int = 44100):
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self.sample_rate = sample_rate

    def build_command(
        self, silent_path: Path, output_path: Path, audio: AudioSpec, fps: float | None = None
    ) -> list[str]:
        cmd = [self.ffmpeg, "-y", "-v", "error", "-i", str(silent_path)]

        if audio.mode == AudioMode.MUTE:
            cmd.extend(["-map", "0:v"])
        elif audio.mode == AudioMode.ORIGINAL:
            if audio.source_path is None:
                raise ValueError("Original audio requires `source_path`!")
            cmd.extend(["-i", str(audio.source_path), "-map", "0:v", "-map", "1:a?", "-c:a", "aac", "-shortest"])
        else:
            if audio.duration is None:
                raise ValueError(f"Noise audio `{audio.mode.value}` requires `duration`!")
            noise = f"anoisesrc=c={NOISE_COLORS[audio.mode]}:d={audio.duration}:r={self.sample_rate}"
            cmd.extend(
                [
                    "-f",
                    "lavfi",
                    "-i",
                    noise,
                    "-filter_complex",
                    "[1:a]apad[a]",
                    "-map",
                    "0:v",
                    "-map",
                    "[a]",
                    "-c:a",
                    "aac",
                    "-shortest",
                ]
            )

        if fps is not None and fps > 0:
            cmd.extend(["-r", f"{fps:g}"])
        cmd.extend(["-c:v", "libx264", "-pix_fmt", "yuv420p", "-movflags", "+faststart", str(output_path)])
        return cmd

    def encode(self, silent_path: Path, output_path: Path, audio: AudioSpec, fps: float | None = None) -> Path:
        """Re-encode `silent_path` with the requested audio into `output_path`.

        Raises:
            MuxingError: If ffmpeg exits with a non-zero code.
            FileNotFoundError: If the ffmpeg executable is missing.
        """
        cmd = self.build_command(silent_path, output_path, audio, fps)
        try:
            subprocess.run(cmd, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as e:
            raise MuxingError(f"ffmpeg exited with code {e.returncode}", stderr=e.stderr) from e
        return output_path

    def probe_duration(self, path: Path) -> float:
        """Returns container duration in seconds, or 0.0 when it cannot be determined.

        Raises:
            MuxingError: If ffprobe exits with a non-zero code.
        """
        cmd = [
            self.ffprobe,
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(path),
        ]
        try:
            result = subprocess.run(cmd, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as e:
            raise MuxingError(f"ffprobe exited with code {e.returncode}", stderr=e.stderr) from e
        try:
            return float(result.stdout.strip())
        except ValueError:
            return 0.0


class AudioMuxer:
    """Attaches the requested audio to a silent render.

    Audio is best effort: when the encoder fails for any reason the silent
    video itself becomes the output, so a render is never lost to remuxing.
    """

    def __init__(self, encoder: FFmpegEncoder | None = None, config: NoiceConfig | None = None):
        config = config or NoiceConfig()
        self.encoder = encoder or FFmpegEncoder(config.ffmpeg, config.ffprobe, config.noise_sample_rate)
        self.fallback_duration = config.fallback_audio_seconds

    def _noise_duration(self, silent_path: Path) -> float:
        try:
            duration = self.encoder.probe_duration(silent_path)
        except Exception as e:
            logger.warning("Could not probe duration of %s: %s", silent_path, e)
            duration = 0.0
        return duration if duration > 0 else self.fallback_duration

    def audio_spec(self, source_path: str | Path, silent_path: Path, mode: AudioMode) -> AudioSpec:
        if mode == AudioMode.ORIGINAL:
            return AudioSpec(mode, source_path=Path(source_path))
        if mode in NOISE_COLORS:
            return AudioSpec(mode, duration=self._noise_duration(silent_path))
        return AudioSpec(mode)

    def mux(
        self,
        source_path: str | Path,
        silent_path: str | Path,
        output_path: str | Path,
        mode: AudioMode | str,
        fps: float | None = None,
    ) -> Path:
        """Produce `output_path` from the silent render and the requested audio.

        Args:
            source_path: Original input video, used for `original` audio.
            silent_path: Rendered video without audio. It is consumed by this call.
            output_path: Final video path.
            mode: Audio mode.
            fps: Frame rate of the render.

        Returns:
            Path of the final video.
        """
        silent_path = Path(silent_path)
        output_path = Path(output_path)
        mode = AudioMode(mode)

        try:
            spec = self.audio_spec(source_path, silent_path, mode)
            self.encoder.encode(silent_path, output_path, spec, fps=fps)
        except Exception as e:
            logger.error("Audio mixing (%s) failed, keeping silent video: %s", mode.value, e)
            if getattr(e, "stderr", None):
                logger.error("FFmpeg stderr: %s", e.stderr)  # type: ignore[attr-defined]
            self._deliver_silent(silent_path, output_path)
            return output_path

        silent_path.unlink(missing_ok=True)
        logger.info("Muxed %s audio into %s", mode.value, output_path)
        return output_path

    @staticmethod
    def _deliver_silent(silent_path: Path, output_path: Path) -> None:
        output_path.unlink(missing_ok=True)
        shutil.move(str(silent_path), str(output_path))
