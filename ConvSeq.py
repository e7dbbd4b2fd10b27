#!/usr/bin/env python3
"""
Sequential image convolution: the single-worker reference every parallel
back-end must match sample for sample.
"""
import logging
import time

from Partition import Region
from PixelBuffer import allocate_like
from Stencil import convolve_block, evaluate_sample

logger = logging.getLogger(__name__)


def apply_convolution(buffer, kernel):
    """Convolve the whole image as one region."""
    out = allocate_like(buffer)
    region = Region(0, buffer.height, 0, buffer.width)
    out.grid[:] = convolve_block(buffer.grid, kernel.weights, buffer.max_value, region)
    return out


def apply_convolution_naive(buffer, kernel):
    """Classic nested loops over every output sample. Slow; small images only."""
    out = allocate_like(buffer)
    src = buffer.grid
    dst = out.grid
    for y in range(buffer.height):
        for x in range(buffer.width):
            for c in range(buffer.channels):
                dst[y, x, c] = evaluate_sample(src, kernel.weights, x, y, c, buffer.max_value)
    return out


def apply_convolution_timed(buffer, kernel):
    """Run apply_convolution() and return (result, elapsed_seconds)."""
    t0 = time.perf_counter()
    out = apply_convolution(buffer, kernel)
    t1 = time.perf_counter()
    logger.debug("Sequential convolution of %r took %.4fs", buffer, t1 - t0)
    return out, (t1 - t0)
