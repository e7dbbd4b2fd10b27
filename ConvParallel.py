#!/usr/bin/env python3
"""
Parallel image convolution with shared-memory worker threads (joblib).

Every thread reads the same input grid and writes its own disjoint slice of
one output grid, so no locking is needed and nothing has to be merged once
the threads have joined.
"""
import logging

from joblib import Parallel, delayed

from Errors import ConfigurationError
from Partition import partition
from PixelBuffer import allocate_like
from Stencil import convolve_block

logger = logging.getLogger(__name__)

QUADRANT_WORKERS = 4


def process_region(src, out, weights, max_value, region):
    """Convolve one region of `src` straight into the same region of `out`."""
    out[region.start_row:region.end_row, region.start_col:region.end_col] = \
        convolve_block(src, weights, max_value, region)
    return region


def apply_convolution(buffer, kernel, n_jobs=4, strategy="rows"):
    if strategy == "quadrants":
        n_workers = QUADRANT_WORKERS
        if n_jobs != QUADRANT_WORKERS:
            logger.debug("Quadrant mode always uses %d threads (asked for %s)", QUADRANT_WORKERS, n_jobs)
    elif strategy == "rows":
        n_workers = n_jobs
    else:
        raise ConfigurationError(f"Unknown partition strategy: {strategy!r}")

    regions = partition(buffer.width, buffer.height, n_workers, strategy)
    out = allocate_like(buffer)
    src = buffer.grid
    dst = out.grid

    logger.info("Convolving %r on %d threads (%s)", buffer, len(regions), strategy)
    for region in regions:
        logger.debug("Thread region: %s", region)

    # ==== ONE THREAD PER REGION, JOINED BEFORE RETURNING ====
    Parallel(n_jobs=len(regions), require="sharedmem")(
        delayed(process_region)(src, dst, kernel.weights, buffer.max_value, region)
        for region in regions
    )
    return out
