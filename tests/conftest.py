import numpy as np
import pytest

from PixelBuffer import PixelBuffer


def random_buffer(width, height, format_tag="rgb", max_value=255, seed=0):
    channels = 3 if format_tag == "rgb" else 1
    rng = np.random.default_rng(seed)
    samples = rng.integers(0, max_value + 1, size=width * height * channels)
    return PixelBuffer(format_tag, width, height, max_value, samples)


def uniform_buffer(width, height, value, format_tag="grayscale", max_value=255):
    channels = 3 if format_tag == "rgb" else 1
    return PixelBuffer(format_tag, width, height, max_value, np.full(width * height * channels, value))


@pytest.fixture
def rgb_10x10():
    return random_buffer(10, 10, "rgb", seed=42)


@pytest.fixture
def gray_odd():
    return random_buffer(7, 11, "grayscale", seed=7)
