"""
Gather step for isolated-memory workers: splice each worker's rows back into
one full image at the offset the partitioner gave that worker's rank.
"""
import logging
from typing import NamedTuple

import numpy as np

from Errors import DistributionError
from PixelBuffer import from_meta

logger = logging.getLogger(__name__)


class PartialResult(NamedTuple):
    rank: int
    offset: int       # first sample index inside the full flat buffer
    length: int       # number of samples
    samples: np.ndarray


def expected_spans(meta, regions):
    spans = []
    for region in regions:
        if region.start_col != 0 or region.end_col != meta.width:
            raise DistributionError(f"Only full-width row bands can be gathered, got {region}")
        spans.append(region.sample_span(meta.width, meta.channels))
    return spans


def assemble(meta, regions, partials):
    """
    Ordered gather keyed by rank. Every partial must sit exactly where the
    partitioner placed its rank; anything else aborts the job.
    """
    spans = expected_spans(meta, regions)

    by_rank = {}
    for part in partials:
        if part.rank in by_rank:
            raise DistributionError(f"Rank {part.rank} returned more than one result")
        if not 0 <= part.rank < len(regions):
            raise DistributionError(f"Unexpected rank {part.rank} (job has {len(regions)} workers)")
        by_rank[part.rank] = part

    missing = [rank for rank in range(len(regions)) if rank not in by_rank]
    if missing:
        logger.error("Gather is missing ranks %s", missing)
        raise DistributionError(f"No result from ranks {missing}")

    out = from_meta(meta)
    for rank, (offset, length) in enumerate(spans):
        part = by_rank[rank]
        if (part.offset, part.length) != (offset, length) or part.samples.size != length:
            logger.error("Rank %d returned span (%d, %d, %d samples), expected (%d, %d)",
                         rank, part.offset, part.length, part.samples.size, offset, length)
            raise DistributionError(f"Rank {rank} result does not match its region")
        out.samples[offset:offset + length] = part.samples

    return out
