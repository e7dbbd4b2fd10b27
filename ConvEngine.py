"""
Job entry point: pick a back-end, validate the job, run it to completion.
"""
import logging
import multiprocessing
import time

import ConvDistributed
import ConvParallel
import ConvParallelAdvanced
import ConvSeq
from Errors import ConfigurationError
from Kernels import Kernel, get_kernel
from Partition import STRATEGIES, check_worker_count
from PixelBuffer import PixelBuffer

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = "threads"
DEFAULT_STRATEGY = "rows"

BACKENDS = ("sequential", "threads", "processes", "distributed")


def resolve_n_jobs(n_jobs):
    if n_jobs is None:
        return multiprocessing.cpu_count()
    check_worker_count(n_jobs)
    return n_jobs


def convolve(buffer, kernel, n_jobs=None, strategy=DEFAULT_STRATEGY, backend=DEFAULT_BACKEND, **options):
    """
    Convolve `buffer` with `kernel` and return a new buffer of the same
    geometry. Blocks until every worker is done; any worker failure is
    raised here.

    `kernel` may be a Kernel or a preset name. `n_jobs=None` uses one worker
    per CPU core. Extra options go to the back-end (the distributed back-end
    takes `distribution`).
    """
    if not isinstance(buffer, PixelBuffer):
        raise ConfigurationError(f"Expected a PixelBuffer, got {type(buffer).__name__}")
    if isinstance(kernel, str):
        kernel = get_kernel(kernel)
    elif not isinstance(kernel, Kernel):
        raise ConfigurationError(f"Expected a Kernel or a filter name, got {type(kernel).__name__}")
    if backend not in BACKENDS:
        raise ConfigurationError(f"Unknown backend: {backend!r} (expected one of {', '.join(BACKENDS)})")
    if strategy not in STRATEGIES:
        raise ConfigurationError(f"Unknown partition strategy: {strategy!r}")
    if strategy == "quadrants" and backend != "threads":
        raise ConfigurationError("Quadrant partitioning is only available on the threads backend")
    n_jobs = resolve_n_jobs(n_jobs)
    if options and backend != "distributed":
        raise ConfigurationError(f"Backend {backend!r} takes no options, got {sorted(options)}")

    logger.info("Job: %r, %dx%d kernel, backend=%s, n_jobs=%d, strategy=%s",
                buffer, kernel.size, kernel.size, backend, n_jobs, strategy)

    if backend == "sequential":
        return ConvSeq.apply_convolution(buffer, kernel)
    if backend == "threads":
        return ConvParallel.apply_convolution(buffer, kernel, n_jobs=n_jobs, strategy=strategy)
    if backend == "processes":
        return ConvParallelAdvanced.apply_convolution(buffer, kernel, n_jobs=n_jobs)
    return ConvDistributed.apply_convolution(buffer, kernel, n_jobs=n_jobs, **options)


def convolve_timed(buffer, kernel, n_jobs=None, strategy=DEFAULT_STRATEGY, backend=DEFAULT_BACKEND, **options):
    """Run convolve() and return (result, elapsed_seconds)."""
    t0 = time.perf_counter()
    out = convolve(buffer, kernel, n_jobs=n_jobs, strategy=strategy, backend=backend, **options)
    t1 = time.perf_counter()
    return out, (t1 - t0)
