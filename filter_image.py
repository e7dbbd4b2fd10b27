#!/usr/bin/env python3
"""
Apply a 3x3 filter to an image.

Usage: python3 filter_image.py input.ppm output.ppm [blur|laplace|sharpen] [backend] [n_jobs]
"""
import logging
import sys
import time

from ConvEngine import BACKENDS, DEFAULT_BACKEND, convolve
from Errors import ConvolutionError
from ImageIO import load_image, save_image
from Kernels import get_kernel

USAGE = ("Usage: python3 filter_image.py input.ppm output.ppm [blur|laplace|sharpen] "
         f"[{'|'.join(BACKENDS)}] [n_jobs]")


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) < 3 or len(argv) > 5:
        print(USAGE, file=sys.stderr)
        return 1

    input_path, output_path, filter_name = argv[:3]
    backend = argv[3] if len(argv) > 3 else DEFAULT_BACKEND
    n_jobs = None
    if len(argv) > 4:
        try:
            n_jobs = int(argv[4])
        except ValueError:
            print(f"n_jobs must be an integer, got {argv[4]!r}", file=sys.stderr)
            return 1

    start = time.perf_counter()
    try:
        kernel = get_kernel(filter_name)
        img = load_image(input_path)
        result = convolve(img, kernel, n_jobs=n_jobs, backend=backend)
        save_image(result, output_path)
    except ConvolutionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    elapsed = time.perf_counter() - start

    print(f"Saved: {output_path}")
    print(f"Execution time: {elapsed:.4f} seconds")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    sys.exit(main())
