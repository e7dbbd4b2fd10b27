"""
Static work partitioning: split an image into disjoint regions, one per worker.
"""
import logging
from typing import List, NamedTuple

from Errors import ConfigurationError

logger = logging.getLogger(__name__)

STRATEGIES = ("rows", "quadrants")


class Region(NamedTuple):
    """Half-open rectangle [start_row, end_row) x [start_col, end_col)."""
    start_row: int
    end_row: int
    start_col: int
    end_col: int

    @property
    def n_rows(self):
        return self.end_row - self.start_row

    @property
    def n_cols(self):
        return self.end_col - self.start_col

    def is_empty(self):
        return self.n_rows <= 0 or self.n_cols <= 0

    def sample_span(self, width, channels):
        """(offset, length) of a full-width row band inside the flat sample array."""
        row_length = width * channels
        return self.start_row * row_length, self.n_rows * row_length


def check_worker_count(n_workers):
    if isinstance(n_workers, bool) or not isinstance(n_workers, int):
        raise ConfigurationError(f"Worker count must be an integer, got {n_workers!r}")
    if n_workers < 1:
        raise ConfigurationError(f"Worker count must be >= 1, got {n_workers}")


def row_bands(width, height, n_workers) -> List[Region]:
    """
    floor(height / n_workers) rows each, the remainder handed out one row
    apiece to the first workers. Never more bands than rows.
    """
    check_worker_count(n_workers)
    n_bands = min(n_workers, height)
    base, remainder = divmod(height, n_bands)

    regions = []
    start = 0
    for rank in range(n_bands):
        n_rows = base + 1 if rank < remainder else base
        regions.append(Region(start, start + n_rows, 0, width))
        start += n_rows
    return regions


def quadrants(width, height) -> List[Region]:
    """Four regions split at (width // 2, height // 2); empty ones are dropped."""
    mid_x = width // 2
    mid_y = height // 2
    regions = [
        Region(0, mid_y, 0, mid_x),           # top-left
        Region(0, mid_y, mid_x, width),       # top-right
        Region(mid_y, height, 0, mid_x),      # bottom-left
        Region(mid_y, height, mid_x, width),  # bottom-right
    ]
    return [r for r in regions if not r.is_empty()]


def partition(width, height, n_workers, strategy="rows") -> List[Region]:
    if width <= 0 or height <= 0:
        raise ConfigurationError(f"Invalid image size: {width}x{height}")
    if strategy == "rows":
        regions = row_bands(width, height, n_workers)
    elif strategy == "quadrants":
        regions = quadrants(width, height)
    else:
        raise ConfigurationError(f"Unknown partition strategy: {strategy!r}")
    logger.debug("Partitioned %dx%d into %d %s regions", width, height, len(regions), strategy)
    return regions
