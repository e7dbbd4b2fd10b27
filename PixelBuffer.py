#!/usr/bin/env python3
"""
Pixel buffer data model.

A PixelBuffer owns the samples of one image as a flat, row-major,
channel-interleaved integer array: sample (x, y, c) lives at
(y * width + x) * channels + c.
"""
from typing import NamedTuple

import numpy as np

from Errors import ConfigurationError

# Format tag -> (channels, plain-text magic)
FORMATS = {
    "grayscale": (1, "P2"),
    "rgb": (3, "P3"),
}

SAMPLE_DTYPE = np.int32
SAMPLE_MAX = int(np.iinfo(SAMPLE_DTYPE).max)


class ImageMeta(NamedTuple):
    """Everything a worker needs to size a local buffer."""
    format_tag: str
    width: int
    height: int
    max_value: int
    channels: int

    @property
    def row_length(self):
        return self.width * self.channels

    @property
    def n_samples(self):
        return self.height * self.row_length


def channels_for(format_tag):
    try:
        return FORMATS[format_tag][0]
    except KeyError:
        raise ConfigurationError(f"Unknown image format: {format_tag!r}") from None


class PixelBuffer:
    def __init__(self, format_tag, width, height, max_value, samples=None):
        channels = channels_for(format_tag)
        if width <= 0 or height <= 0:
            raise ConfigurationError(f"Invalid image size: {width}x{height}")
        if max_value <= 0 or max_value > SAMPLE_MAX:
            raise ConfigurationError(f"Invalid max value: {max_value}")

        n_samples = width * height * channels
        if samples is None:
            samples = np.zeros(n_samples, dtype=SAMPLE_DTYPE)
        else:
            raw = np.asarray(samples).reshape(-1)
            if raw.size and raw.dtype.kind not in "iu":
                raise ConfigurationError(f"Samples must be integers, got {raw.dtype}")
            if raw.size != n_samples:
                raise ConfigurationError(
                    f"Expected {n_samples} samples for {width}x{height}x{channels}, got {raw.size}")
            # range check before narrowing to int32
            if raw.size and (raw.min() < 0 or raw.max() > max_value):
                raise ConfigurationError(f"Samples outside [0, {max_value}]")
            samples = np.ascontiguousarray(raw, dtype=SAMPLE_DTYPE)

        self.format_tag = format_tag
        self.channels = channels
        self.width = width
        self.height = height
        self.max_value = max_value
        self.samples = samples

    @property
    def meta(self):
        return ImageMeta(self.format_tag, self.width, self.height, self.max_value, self.channels)

    @property
    def grid(self):
        """(height, width, channels) view sharing memory with `samples`."""
        return self.samples.reshape(self.height, self.width, self.channels)

    def index(self, x, y, c=0):
        return (y * self.width + x) * self.channels + c

    def copy(self):
        return PixelBuffer(self.format_tag, self.width, self.height, self.max_value, self.samples.copy())

    def to_array(self):
        """Grid as an (H, W) or (H, W, 3) array, uint8 when the range allows it."""
        arr = self.grid if self.channels == 3 else self.grid[:, :, 0]
        if self.max_value <= 255:
            return arr.astype(np.uint8)
        return arr.copy()

    def __eq__(self, other):
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.meta == other.meta and np.array_equal(self.samples, other.samples)

    def __repr__(self):
        return (f"PixelBuffer({self.format_tag!r}, width={self.width}, "
                f"height={self.height}, max_value={self.max_value})")


def allocate_like(buffer):
    """Zero-filled buffer with the same geometry as `buffer`."""
    return PixelBuffer(buffer.format_tag, buffer.width, buffer.height, buffer.max_value)


def from_meta(meta, samples=None):
    return PixelBuffer(meta.format_tag, meta.width, meta.height, meta.max_value, samples)


def from_array(arr, max_value=255):
    """Build a buffer from a 2-D grayscale or (H, W, 3) RGB array."""
    arr = np.asarray(arr)
    if arr.ndim == 2:
        format_tag = "grayscale"
    elif arr.ndim == 3 and arr.shape[2] == 3:
        format_tag = "rgb"
    elif arr.ndim == 3 and arr.shape[2] == 1:
        format_tag = "grayscale"
    else:
        raise ConfigurationError(f"Unsupported array shape: {arr.shape}")
    h, w = arr.shape[0], arr.shape[1]
    return PixelBuffer(format_tag, w, h, max_value, arr.reshape(-1))
