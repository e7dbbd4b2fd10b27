#!/usr/bin/env python3
"""
Benchmark script to compare the sequential engine against every parallel backend.

Usage: python3 benchmark.py [image_path|size] [filter] [n_runs]
"""
import json
import multiprocessing
import sys
import time

import numpy as np

from ConvEngine import convolve
from ImageIO import load_image
from Kernels import get_kernel
from PixelBuffer import from_array

PARALLEL_BACKENDS = ("threads", "processes", "distributed")


def synthetic_image(size, seed=0):
    rng = np.random.default_rng(seed)
    return from_array(rng.integers(0, 256, size=(size, size, 3), dtype=np.uint8))


def time_runs(buffer, kernel, n_runs, **job):
    times = []
    result = None
    for i in range(n_runs):
        start = time.perf_counter()
        result = convolve(buffer, kernel, **job)
        elapsed = time.perf_counter() - start
        times.append(elapsed)
        print(f"Run {i+1}: {elapsed:.4f} seconds")
    avg = float(np.mean(times))
    print(f"Average: {avg:.4f} ± {float(np.std(times)):.4f} seconds")
    return result, avg


def benchmark_convolution(buffer, kernel, n_jobs_list, n_runs=3):
    """Run every backend for every worker count and check parity with the sequential run."""
    print(f"Image size: {buffer.width}x{buffer.height} pixels ({buffer.format_tag})")
    print(f"Kernel size: {kernel.size}x{kernel.size}")
    print(f"Number of runs: {n_runs}")
    print(f"CPU cores: {multiprocessing.cpu_count()}")
    print("=" * 70)

    print("\nSEQUENTIAL")
    print("-" * 70)
    result_seq, avg_seq = time_runs(buffer, kernel, n_runs, backend="sequential", n_jobs=1)

    entries = [{
        'backend': 'sequential', 'n_jobs': 1,
        'seconds': avg_seq, 'speedup': 1.0, 'efficiency': 1.0, 'identical': True,
    }]

    for backend in PARALLEL_BACKENDS:
        for n_jobs in n_jobs_list:
            print(f"\n{backend.upper()} (n_jobs={n_jobs})")
            print("-" * 70)
            result, avg = time_runs(buffer, kernel, n_runs, backend=backend, n_jobs=n_jobs)
            speedup = avg_seq / avg if avg > 0 else float('inf')
            identical = result == result_seq
            print(f"Speedup: {speedup:.2f}x   Efficiency: {speedup / n_jobs:.2%}")
            entries.append({
                'backend': backend, 'n_jobs': n_jobs,
                'seconds': avg, 'speedup': speedup, 'efficiency': speedup / n_jobs,
                'identical': identical,
            })

    # Summary
    print("\n" + "=" * 70)
    print("SUMMARY")
    print("=" * 70)
    for e in entries:
        label = f"{e['backend']} (n={e['n_jobs']})"
        print(f"{label:<28} {e['seconds']:.4f}s  ({e['speedup']:.2f}x speedup)")

    best = min(entries, key=lambda e: e['seconds'])
    print(f"\nBest: {best['backend']} n_jobs={best['n_jobs']} ({best['seconds']:.4f}s)")

    print("\n" + "=" * 70)
    print("VERIFICATION")
    print("=" * 70)
    if all(e['identical'] for e in entries):
        print("✓ All results are identical!")
    else:
        for e in entries:
            if not e['identical']:
                print(f"⚠ {e['backend']} n_jobs={e['n_jobs']} differs from the sequential result")

    return entries


def save_results(entries, buffer, filter_name, output_path='benchmark_results.json'):
    data = {
        'metadata': {
            'width': buffer.width,
            'height': buffer.height,
            'format': buffer.format_tag,
            'filter': filter_name,
            'cpu_count': multiprocessing.cpu_count(),
        },
        'results': entries,
    }
    with open(output_path, 'w') as f:
        json.dump(data, f, indent=2)
    print(f"\n✓ Results saved to: {output_path}")


def main():
    # Configuration
    source = sys.argv[1] if len(sys.argv) > 1 else "256"
    filter_name = sys.argv[2] if len(sys.argv) > 2 else "blur"
    n_runs = int(sys.argv[3]) if len(sys.argv) > 3 else 3
    n_jobs_list = sorted({1, 2, 4, multiprocessing.cpu_count()})

    buffer = synthetic_image(int(source)) if source.isdigit() else load_image(source)
    kernel = get_kernel(filter_name)

    print("=" * 70)
    print("CONVOLUTION BENCHMARK: Sequential vs Parallel Backends")
    print("=" * 70)

    entries = benchmark_convolution(buffer, kernel, n_jobs_list, n_runs)
    save_results(entries, buffer, filter_name)
    return 0


if __name__ == "__main__":
    sys.exit(main())
