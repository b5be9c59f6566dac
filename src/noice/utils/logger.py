import logging
import os
from pathlib import Path

LOG_LEVEL = os.environ.get("LOG_LEVEL", "info")

LOGGING_FORMAT = "[{asctime}|{filename}:{funcName}:{lineno:d}]{levelname}  {message}"


def _level_from_name(name: str) -> int:
    return {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "critical": logging.CRITICAL,
        "error": logging.ERROR,
    }.get(name.lower(), logging.INFO)


def setup_logging(level: str | None = None, log_file: str | Path | None = None) -> logging.Logger:
    """Configure the root logger for console output and an optional appending log file.

    Args:
        level: Level name, defaults to the `LOG_LEVEL` environment variable.
        log_file: Path of a file that receives the same records as the console.

    Returns:
        The configured root logger.
    """
    logger = logging.getLogger()
    logger.setLevel(_level_from_name(level or LOG_LEVEL))

    # Replace handlers installed by an earlier call, leave foreign ones alone
    for handler in [h for h in logger.handlers if getattr(h, "_noice", False)]:
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOGGING_FORMAT, style="{", datefmt="%H:%M:%S"))
    handlers: list[logging.Handler] = [console_handler]

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOGGING_FORMAT, style="{", datefmt="%Y-%m-%d %H:%M:%S"))
        handlers.append(file_handler)

    for handler in handlers:
        handler._noice = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    return logger
