"""Full-fidelity offline render of a noice video."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator

import cv2
import numpy as np

from noice.base.audio import AudioMuxer
from noice.base.config import NoiceConfig, get_config
from noice.base.exceptions import NoiceError, RenderError
from noice.base.pipeline import FramePipeline
from noice.base.progress import ProgressRegistry, progress_iter
from noice.base.video import JobParams, VideoSource

__all__ = ["BatchRenderer", "silent_path_for"]

logger = logging.getLogger(__name__)

SILENT_SUFFIX = ".silent.mp4"


def silent_path_for(output_path: Path) -> Path:
    """Path of the intermediate video written before audio is muxed in."""
    return output_path.with_name(output_path.name + SILENT_SUFFIX)


def _decoded_frames(source: VideoSource, buffer: np.ndarray) -> Iterator[np.ndarray]:
    while (frame := source.read(buffer)) is not None:
        yield frame


class BatchRenderer:
    """Renders every frame of a source into a video file, then muxes audio.

    Unlike the preview stream nothing is skipped or paced. Progress is published
    to a `ProgressRegistry` under the job id so that another thread can poll it;
    the entry disappears when the render ends, successfully or not.

    Example:
        >>> registry = ProgressRegistry()
        >>> renderer = BatchRenderer(registry)
        >>> renderer.render("input.mp4", "out.mp4", JobParams(audio_mode="white"))
    """

    def __init__(
        self,
        registry: ProgressRegistry | None = None,
        muxer: AudioMuxer | None = None,
        config: NoiceConfig | None = None,
        source_opener: Callable[[str | Path], VideoSource] | None = None,
        fourcc: str = "mp4v",
    ):
        self.config = config or get_config()
        self.registry = registry if registry is not None else ProgressRegistry()
        self.muxer = muxer or AudioMuxer(config=self.config)
        self._open_source = source_opener or (lambda path: VideoSource(path, default_fps=self.config.default_fps))
        self.fourcc = fourcc

    def render(
        self,
        source_path: str | Path,
        output_path: str | Path,
        params: JobParams,
        job_id: str | None = None,
        seed: int | None = None,
    ) -> Path:
        """Render `source_path` into `output_path`.

        Args:
            source_path: Input video.
            output_path: Final video path.
            params: Job parameters. `speed` is ignored, every frame is rendered.
            job_id: Key of the progress entry, defaults to the output file name.
            seed: Optional seed of the noise pool.

        Returns:
            Path of the final video.

        Raises:
            SourceOpenError: If the input cannot be decoded. No output is written.
            JobConflictError: If the same job id is already rendering.
            RenderError: If processing or delivering the output fails. Partial files are removed.
        """
        output_path = Path(output_path)
        job_id = job_id or output_path.name
        silent_path = silent_path_for(output_path)

        with self.registry.track(job_id):
            source = self._open_source(source_path)
            fps = source.fps
            try:
                processed = self._render_silent(source, silent_path, params, job_id, seed)
            except NoiceError:
                silent_path.unlink(missing_ok=True)
                raise
            except Exception as e:
                silent_path.unlink(missing_ok=True)
                raise RenderError(f"Rendering failed: {e}") from e

            logger.info("Rendered %d frames, muxing %s audio", processed, params.audio_mode.value)
            try:
                self.muxer.mux(source_path, silent_path, output_path, params.audio_mode, fps)
            except Exception as e:
                silent_path.unlink(missing_ok=True)
                raise RenderError(f"Delivering {output_path} failed: {e}") from e
            self.registry.complete(job_id)

        logger.info("Rendering complete: %s", output_path)
        return output_path

    def _render_silent(
        self,
        source: VideoSource,
        silent_path: Path,
        params: JobParams,
        job_id: str,
        seed: int | None,
    ) -> int:
        pipeline: FramePipeline | None = None
        writer: cv2.VideoWriter | None = None
        try:
            pipeline = FramePipeline.build(params, source.width, source.height, self.config, seed=seed)
            writer = cv2.VideoWriter(
                str(silent_path),
                cv2.VideoWriter_fourcc(*self.fourcc),
                source.fps,
                pipeline.buffers.target_size,
            )
            if not writer.isOpened():
                raise RenderError(f"Cannot open video writer for {silent_path}")
            return self._write_frames(source, pipeline, writer, job_id)
        finally:
            source.release()
            if writer is not None:
                writer.release()
            if pipeline is not None:
                pipeline.release()

    def _write_frames(
        self, source: VideoSource, pipeline: FramePipeline, writer: cv2.VideoWriter, job_id: str
    ) -> int:
        total = source.frame_count
        every = self.config.progress_every
        processed = 0
        frames = _decoded_frames(source, pipeline.buffers.frame)
        for frame in progress_iter(frames, desc="Rendering", total=total):
            writer.write(pipeline.process(frame))
            processed += 1
            if processed % every == 0:
                if total > 0:
                    percent = processed / total * 100
                    self.registry.update(job_id, percent)
                    logger.info("Rendering... %d/%d (%.1f%%)", processed, total, min(percent, 100.0))
                else:
                    logger.info("Rendering... %d frames", processed)
        return processed
