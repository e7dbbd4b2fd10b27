#!/usr/bin/env python3
"""
Advanced parallel image convolution using joblib worker processes.
Input and output live in shared memory to avoid pickling the image:
every process attaches to both segments by name, reads the whole input and
writes only the rows of its own band.
"""
import logging
from multiprocessing import shared_memory

import numpy as np
from joblib import Parallel, delayed

from Partition import partition
from PixelBuffer import SAMPLE_DTYPE, from_meta
from Stencil import convolve_block

logger = logging.getLogger(__name__)


def process_region_shm(shm_input_name, shm_output_name, grid_shape, dtype_str,
                       weights, max_value, region):
    """Convolve one row band from the shared input into the shared output."""
    # Attach to both segments by name
    shm_input = shared_memory.SharedMemory(name=shm_input_name)
    try:
        shm_output = shared_memory.SharedMemory(name=shm_output_name)
        img_arr = out_arr = None
        try:
            img_arr = np.ndarray(grid_shape, dtype=dtype_str, buffer=shm_input.buf)
            out_arr = np.ndarray(grid_shape, dtype=dtype_str, buffer=shm_output.buf)

            block = convolve_block(img_arr, weights, max_value, region)

            # Only this band's rows are written
            out_arr[region.start_row:region.end_row, region.start_col:region.end_col] = block
        finally:
            # Views must go before the handles can close (but don't unlink)
            img_arr = out_arr = None
            shm_output.close()
    finally:
        shm_input.close()

    return region


def apply_convolution(buffer, kernel, n_jobs=4):
    regions = partition(buffer.width, buffer.height, n_jobs, "rows")
    grid = np.ascontiguousarray(buffer.grid, dtype=SAMPLE_DTYPE)

    # One segment for the input grid, one for the output grid
    shm_input = shared_memory.SharedMemory(create=True, size=grid.nbytes)
    try:
        shm_output = shared_memory.SharedMemory(create=True, size=grid.nbytes)
        input_arr = output_arr = None
        try:
            input_arr = np.ndarray(grid.shape, dtype=grid.dtype, buffer=shm_input.buf)
            np.copyto(input_arr, grid)
            output_arr = np.ndarray(grid.shape, dtype=grid.dtype, buffer=shm_output.buf)
            output_arr[:] = 0

            logger.info("Convolving %r on %d processes (shared memory)", buffer, len(regions))
            for rank, region in enumerate(regions):
                logger.debug("Rank %d: rows [%d, %d)", rank, region.start_row, region.end_row)

            # One process per row band, all attached to the same two segments
            Parallel(n_jobs=len(regions), prefer="processes")(
                delayed(process_region_shm)(
                    shm_input.name, shm_output.name, grid.shape, grid.dtype.str,
                    kernel.weights, buffer.max_value, region
                )
                for region in regions
            )

            # Copy results out before the segment goes away
            out = from_meta(buffer.meta, output_arr.reshape(-1).copy())
        finally:
            input_arr = output_arr = None
            shm_output.close()
            shm_output.unlink()
    finally:
        shm_input.close()
        shm_input.unlink()

    return out
