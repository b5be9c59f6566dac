from pathlib import Path
from typing import BinaryIO

import click

from noice.base.audio import AudioMode
from noice.base.config import get_config
from noice.base.progress import configure
from noice.base.render import BatchRenderer
from noice.base.streaming import CancellationToken, StreamingSession
from noice.base.video import JobParams
from noice.utils.logger import setup_logging

BOUNDARY = "frame"


def multipart_frame(jpeg: bytes, boundary: str = BOUNDARY) -> bytes:
    """Wrap one JPEG as a part of a `multipart/x-mixed-replace` body."""
    header = f"--{boundary}\r\nContent-Type: image/jpeg\r\n\r\n".encode("ascii")
    return header + jpeg + b"\r\n"


def write_preview(session: StreamingSession, out: BinaryIO, max_frames: int | None = None) -> int:
    """Write every frame of `session` to `out` as multipart parts. Returns the frame count."""
    written = 0
    for jpeg in session:
        out.write(multipart_frame(jpeg))
        out.flush()
        written += 1
        if max_frames is not None and written >= max_frames:
            session.cancel()
    return written


@click.group(help="Replace static video content with noise and reveal motion through moving noise.")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["debug", "info", "warning", "error", "critical"], case_sensitive=False),
    help="Logging level. Defaults to the LOG_LEVEL environment variable or 'info'.",
)
@click.option(
    "--log-file",
    default=None,
    type=click.Path(dir_okay=False, writable=True),
    help="Also append log records to this file.",
)
def main(log_level: str | None, log_file: str | None):
    setup_logging(log_level, log_file)


@main.command(help="Render a full-quality noice video to a file.")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("output_path", type=click.Path(dir_okay=False, writable=True))
@click.option("-s", "--scale", default=1.0, show_default=True, type=float, help="Output size relative to input.")
@click.option("--color/--gray", "is_color", default=True, show_default=True, help="Color or gray noise.")
@click.option("--nitro", is_flag=True, default=False, help="Fast frame differencing instead of background model.")
@click.option(
    "-a",
    "--audio",
    "audio_mode",
    default=AudioMode.MUTE.value,
    show_default=True,
    type=click.Choice([mode.value for mode in AudioMode]),
    help="Audio track of the output.",
)
@click.option("--seed", default=None, type=int, help="Seed of the noise textures.")
@click.option("--progress/--no-progress", default=True, show_default=True, help="Show a progress bar.")
def render(
    input_path: str,
    output_path: str,
    scale: float,
    is_color: bool,
    nitro: bool,
    audio_mode: str,
    seed: int | None,
    progress: bool,
):
    configure(progress=progress)
    params = JobParams(scale=scale, is_color=is_color, nitro=nitro, audio_mode=AudioMode(audio_mode))
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    result = BatchRenderer(config=get_config()).render(input_path, output_path, params, seed=seed)
    click.echo(str(result))


@main.command(help="Stream a paced multipart JPEG preview to a file or '-' for stdout.")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("output", type=click.File("wb"))
@click.option("-s", "--scale", default=0.5, show_default=True, type=float, help="Preview size relative to input.")
@click.option("--speed", default=1.0, show_default=True, type=float, help="Playback speed, above 1 skips frames.")
@click.option("--color/--gray", "is_color", default=True, show_default=True, help="Color or gray noise.")
@click.option("--nitro", is_flag=True, default=False, help="Fast frame differencing instead of background model.")
@click.option("-n", "--max-frames", default=None, type=int, help="Stop after this many frames.")
def preview(
    input_path: str,
    output: BinaryIO,
    scale: float,
    speed: float,
    is_color: bool,
    nitro: bool,
    max_frames: int | None,
):
    params = JobParams(scale=scale, is_color=is_color, speed=speed, nitro=nitro)
    token = CancellationToken()
    with StreamingSession(input_path, params, token=token, config=get_config()) as session:
        try:
            write_preview(session, output, max_frames=max_frames)
        except KeyboardInterrupt:
            token.cancel()
    click.echo(f"Preview {session.state.value}: {session.processed_frames} frames", err=True)


if __name__ == "__main__":
    main()
