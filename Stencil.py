"""
Stencil evaluation.

Taps that fall outside the image are left out of the weighted sum: no zero
padding, no edge replication. The sum is rounded half-to-even and clamped to
[0, max_value].

`evaluate_sample` is the per-sample definition; `convolve_block` computes a
whole rectangle at once and produces the same numbers, because every output
sample accumulates its in-bounds taps in the same (ky, kx) order.
"""
import logging

import numpy as np

from Errors import DistributionError
from PixelBuffer import SAMPLE_DTYPE

logger = logging.getLogger(__name__)


def saturate(acc, max_value):
    """Round and clamp. Sums that overflowed saturate; NaN (inf - inf) maps to 0."""
    acc = np.nan_to_num(acc, nan=0.0, posinf=max_value, neginf=0.0)
    return np.clip(np.rint(acc), 0, max_value)


def clamp_round(value, max_value):
    return int(saturate(value, max_value))


def evaluate_sample(grid, weights, x, y, c, max_value):
    """One output sample from a (height, width, channels) grid."""
    height, width = grid.shape[0], grid.shape[1]
    radius = weights.shape[0] // 2
    total = np.float64(0.0)
    with np.errstate(over="ignore", invalid="ignore"):
        for ky in range(-radius, radius + 1):
            ny = y + ky
            if ny < 0 or ny >= height:
                continue
            for kx in range(-radius, radius + 1):
                nx = x + kx
                if nx < 0 or nx >= width:
                    continue
                total += grid[ny, nx, c] * weights[ky + radius, kx + radius]
    return clamp_round(total, max_value)


def required_rows(region, radius, image_height):
    """Half-open row range a worker must see to compute `region`."""
    return max(0, region.start_row - radius), min(image_height, region.end_row + radius)


def convolve_block(src, weights, max_value, region, row_offset=0, image_height=None):
    """
    Convolve one region.

    `src` is a (rows, width, channels) array holding image rows
    [row_offset, row_offset + rows); it may be the full image or a halo slice.
    Returns the clamped integer samples of `region`, shape
    (region.n_rows, region.n_cols, channels).
    """
    local_h, width, channels = src.shape
    if image_height is None:
        image_height = row_offset + local_h
    radius = weights.shape[0] // 2

    need_start, need_end = required_rows(region, radius, image_height)
    if need_start < row_offset or need_end > row_offset + local_h:
        logger.error("Halo missing for %s: have rows [%d, %d), need [%d, %d)",
                     region, row_offset, row_offset + local_h, need_start, need_end)
        raise DistributionError(
            f"Rows [{need_start}, {need_end}) needed for {region} but only "
            f"[{row_offset}, {row_offset + local_h}) are available")

    acc = np.zeros((region.n_rows, region.n_cols, channels), dtype=np.float64)
    with np.errstate(over="ignore", invalid="ignore"):
        for ky in range(-radius, radius + 1):
            # output rows whose neighbour row y + ky is inside the image
            y0 = max(region.start_row, -ky)
            y1 = min(region.end_row, image_height - ky)
            if y0 >= y1:
                continue
            for kx in range(-radius, radius + 1):
                x0 = max(region.start_col, -kx)
                x1 = min(region.end_col, width - kx)
                if x0 >= x1:
                    continue
                window = src[y0 + ky - row_offset:y1 + ky - row_offset, x0 + kx:x1 + kx]
                acc[y0 - region.start_row:y1 - region.start_row,
                    x0 - region.start_col:x1 - region.start_col] += window * weights[ky + radius, kx + radius]

    return saturate(acc, max_value).astype(SAMPLE_DTYPE)
