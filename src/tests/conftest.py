import shutil

import numpy as np
import pytest

from noice.base.config import clear_config_cache
from tests.helpers import SMALL_POOL_CONFIG, moving_square_frames, write_video


def pytest_collection_modifyitems(config, items):
    if shutil.which("ffmpeg") and shutil.which("ffprobe"):
        return
    skip = pytest.mark.skip(reason="ffmpeg/ffprobe not installed")
    for item in items:
        if "ffmpeg" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(autouse=True)
def _fresh_config():
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def small_config():
    return SMALL_POOL_CONFIG


@pytest.fixture
def square_frames():
    return moving_square_frames()


@pytest.fixture
def black_frames():
    return [np.zeros((48, 64, 3), dtype=np.uint8) for _ in range(10)]


@pytest.fixture
def square_video(tmp_path, square_frames):
    """2 seconds of 30fps 100x100 video with a moving white square."""
    return write_video(tmp_path / "square.avi", square_frames, fps=30.0)
