#!/usr/bin/env python3
"""
Parallel sum of a large integer array.

Each thread sums its own contiguous chunk and hands the partial sum back;
the caller adds the partials once every thread has joined. There is no
shared accumulator and no lock.
"""
import time

import numpy as np
from joblib import Parallel, delayed

from Partition import check_worker_count


def make_array(n, seed=None):
    """n random integers in [0, 1000)."""
    rng = np.random.default_rng(seed)
    return rng.integers(0, 1000, size=n, dtype=np.int64)


def chunk_bounds(n, n_jobs):
    """Contiguous [start, end) chunks; the first n % n_jobs chunks get one extra item."""
    check_worker_count(n_jobs)
    n_chunks = max(1, min(n_jobs, n))
    base, remainder = divmod(n, n_chunks)
    bounds = []
    start = 0
    for rank in range(n_chunks):
        end = start + base + (1 if rank < remainder else 0)
        bounds.append((start, end))
        start = end
    return bounds


def local_sum(arr, start, end):
    return int(arr[start:end].sum())


def parallel_sum(arr, n_jobs=10):
    bounds = chunk_bounds(len(arr), n_jobs)
    partials = Parallel(n_jobs=len(bounds), require="sharedmem")(
        delayed(local_sum)(arr, start, end) for start, end in bounds
    )
    return sum(partials)


if __name__ == "__main__":
    # Configuration
    n = 5_000_000
    n_jobs = 10

    start = time.perf_counter()
    arr = make_array(n)
    total = parallel_sum(arr, n_jobs=n_jobs)
    elapsed = time.perf_counter() - start

    print(f"Total sum with n={n} threads={n_jobs}: {total}")
    print(f"Execution time: {elapsed:.4f} seconds")
