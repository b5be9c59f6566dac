import numpy as np
import pytest

from noice.base.exceptions import InvalidDimensionsError
from noice.base.noise import DEFAULT_POOL_SIZE, NoiseTexturePool


@pytest.mark.parametrize("width, height, size", [(64, 48, 4), (1, 1, 1), (33, 17, 7)])
@pytest.mark.parametrize("is_color", [True, False])
def test_create_pool_shape(width: int, height: int, size: int, is_color: bool):
    pool = NoiseTexturePool.create(width, height, is_color=is_color, size=size, seed=1)

    assert len(pool) == size
    for frame in pool:
        assert frame.shape == (height, width, 3)
        assert frame.dtype == np.uint8


def test_default_pool_size():
    pool = NoiseTexturePool.create(8, 8)
    assert len(pool) == DEFAULT_POOL_SIZE


def test_gray_pool_replicates_channels():
    pool = NoiseTexturePool.create(32, 32, is_color=False, size=3, seed=2)
    for frame in pool:
        assert (frame[:, :, 0] == frame[:, :, 1]).all()
        assert (frame[:, :, 1] == frame[:, :, 2]).all()


def test_color_pool_channels_are_independent():
    pool = NoiseTexturePool.create(64, 64, is_color=True, size=1, seed=3)
    frame = pool[0]
    assert (frame[:, :, 0] != frame[:, :, 1]).any()


def test_pool_covers_full_byte_range():
    pool = NoiseTexturePool.create(256, 256, is_color=True, size=1, seed=4)
    assert pool[0].min() == 0
    assert pool[0].max() == 255


def test_pool_elements_differ():
    pool = NoiseTexturePool.create(32, 32, size=4, seed=5)
    assert not np.array_equal(pool[0], pool[1])
    assert not np.array_equal(pool[2], pool[3])


def test_seed_reproduces_pool():
    first = NoiseTexturePool.create(16, 16, size=5, seed=42)
    second = NoiseTexturePool.create(16, 16, size=5, seed=42)
    for a, b in zip(first, second):
        assert np.array_equal(a, b)


def test_pool_frames_are_read_only():
    pool = NoiseTexturePool.create(8, 8, size=2, seed=0)
    with pytest.raises(ValueError):
        pool[0][0, 0, 0] = 1


def test_static_and_cyclic_access():
    pool = NoiseTexturePool.create(8, 8, size=3, seed=0)
    assert pool.static is pool[0]
    assert pool.frame_for(0) is pool[0]
    assert pool.frame_for(4) is pool[1]
    assert pool.frame_for(6) is pool[0]
    assert pool.shape == (8, 8, 3)


@pytest.mark.parametrize("width, height", [(0, 10), (10, 0), (-1, 5)])
def test_invalid_dimensions(width: int, height: int):
    with pytest.raises(InvalidDimensionsError):
        NoiseTexturePool.create(width, height)


def test_invalid_dimensions_is_value_error():
    with pytest.raises(ValueError):
        NoiseTexturePool.create(0, 0)


def test_invalid_pool_size():
    with pytest.raises(ValueError):
        NoiseTexturePool.create(8, 8, size=0)
