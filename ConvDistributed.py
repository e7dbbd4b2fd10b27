#!/usr/bin/env python3
"""
Distributed image convolution: isolated worker processes that share no memory.

The coordinator (the calling process) holds the image. A job runs as a strict
pipeline:

  1. broadcast the image metadata to every rank,
  2. scatter each rank its row band plus `radius` halo rows above and below
     (or, for small images, the whole image),
  3. every rank convolves its own rows into a private partial result,
  4. the coordinator gathers the partials in rank order and splices them
     into the output.

Payloads are pickled into each joblib worker (memmapping disabled) so no
worker can see another's memory. Any worker failure aborts the whole job.
"""
import logging
from typing import NamedTuple

import numpy as np
from joblib import Parallel, delayed

from Assembler import PartialResult, assemble
from Errors import ConfigurationError, DistributionError
from Partition import Region, partition
from Stencil import convolve_block, required_rows

logger = logging.getLogger(__name__)

# Images with at most this many samples are broadcast whole under "auto"
BROADCAST_THRESHOLD = 64 * 64 * 3

DISTRIBUTIONS = ("auto", "halo", "broadcast")


class ScatterPayload(NamedTuple):
    rank: int
    region: Region
    row_offset: int      # image row held in samples[0]
    samples: np.ndarray  # flat, full-width rows


def resolve_distribution(distribution, meta):
    if distribution not in DISTRIBUTIONS:
        raise ConfigurationError(f"Unknown distribution: {distribution!r}")
    if distribution == "auto":
        return "broadcast" if meta.n_samples <= BROADCAST_THRESHOLD else "halo"
    return distribution


def broadcast_metadata(meta, n_ranks):
    """Every rank gets the same immutable metadata."""
    return [meta] * n_ranks


def scatter(buffer, regions, radius, distribution):
    """Build each rank's input slice."""
    meta = buffer.meta
    payloads = []
    for rank, region in enumerate(regions):
        if distribution == "halo":
            start, end = required_rows(region, radius, meta.height)
        else:
            start, end = 0, meta.height
        rows = buffer.samples[start * meta.row_length:end * meta.row_length]
        payloads.append(ScatterPayload(rank, region, start, rows))
    return payloads


def run_worker(meta, weights, payload):
    """Local compute for one rank. Runs inside the worker process."""
    samples = payload.samples
    if samples is None or samples.size == 0 or samples.size % meta.row_length:
        message = (f"Rank {payload.rank} received {0 if samples is None else samples.size} samples, "
                   f"not a whole number of {meta.row_length}-sample rows")
        logger.error(message)
        raise DistributionError(message)
    n_rows = samples.size // meta.row_length
    if payload.row_offset < 0 or payload.row_offset + n_rows > meta.height:
        message = (f"Rank {payload.rank} received rows [{payload.row_offset}, {payload.row_offset + n_rows}) "
                   f"outside a {meta.height}-row image")
        logger.error(message)
        raise DistributionError(message)

    local = samples.reshape(n_rows, meta.width, meta.channels)
    block = convolve_block(local, weights, meta.max_value, payload.region,
                           row_offset=payload.row_offset, image_height=meta.height)

    offset, length = payload.region.sample_span(meta.width, meta.channels)
    return PartialResult(payload.rank, offset, length, block.reshape(-1))


def apply_convolution(buffer, kernel, n_jobs=4, distribution="auto", joblib_backend="loky"):
    if buffer is None:
        logger.error("Coordinator has no input image")
        raise DistributionError("Coordinator has no input image; aborting job")

    meta = buffer.meta
    regions = partition(meta.width, meta.height, n_jobs, "rows")
    distribution = resolve_distribution(distribution, meta)

    # ==== 1. METADATA BROADCAST ====
    metas = broadcast_metadata(meta, len(regions))
    # ==== 2. DISTRIBUTION ====
    payloads = scatter(buffer, regions, kernel.radius, distribution)

    logger.info("Convolving %r on %d isolated workers (%s)", buffer, len(regions), distribution)
    for p in payloads:
        logger.debug("Rank %d: rows [%d, %d), %d input rows from row %d", p.rank, p.region.start_row,
                     p.region.end_row, p.samples.size // meta.row_length, p.row_offset)

    # ==== 3. LOCAL COMPUTE ====
    try:
        partials = Parallel(n_jobs=len(regions), backend=joblib_backend, max_nbytes=None)(
            delayed(run_worker)(rank_meta, kernel.weights, payload)
            for rank_meta, payload in zip(metas, payloads)
        )
    except DistributionError as e:
        logger.error("Worker failed, aborting job: %s", e)
        raise

    # ==== 4. GATHER ====
    return assemble(meta, regions, partials)
