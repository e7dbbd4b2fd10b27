"""
Kernel presets and the immutable Kernel value shared by all workers.
"""
from enum import Enum

import numpy as np

from Errors import ConfigurationError

# Kernel presets
KERNEL_BLUR = np.full((3, 3), 1 / 9, dtype=float)
KERNEL_LAPLACE = np.array([[0,-1,0],[-1,4,-1],[0,-1,0]], dtype=float)
KERNEL_SHARPEN = np.array([[0,-1,0],[-1,5,-1],[0,-1,0]], dtype=float)


class Kernel:
    """Square, odd-sided weight matrix. Read-only once built."""

    def __init__(self, weights, normalize=False):
        try:
            w = np.array(weights, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Kernel weights are not a numeric matrix: {e}") from e
        if w.ndim != 2 or w.shape[0] != w.shape[1]:
            raise ConfigurationError(f"Kernel must be square, got shape {w.shape}")
        if w.shape[0] % 2 == 0:
            raise ConfigurationError(f"Kernel side must be odd, got {w.shape[0]}")
        if not np.all(np.isfinite(w)):
            raise ConfigurationError("Kernel weights must be finite")

        # Normalize kernel if requested
        if normalize:
            s = w.sum()
            if s != 0:
                w = w / s

        w.setflags(write=False)
        self.weights = w

    @property
    def size(self):
        return self.weights.shape[0]

    @property
    def radius(self):
        return (self.size - 1) // 2

    def __eq__(self, other):
        if not isinstance(other, Kernel):
            return NotImplemented
        return np.array_equal(self.weights, other.weights)

    def __hash__(self):
        return hash(self.weights.tobytes())

    def __repr__(self):
        return f"Kernel({self.weights.tolist()})"


class FilterKind(Enum):
    BLUR = "blur"
    LAPLACE = "laplace"
    SHARPEN = "sharpen"
    CUSTOM = "custom"


PRESETS = {
    FilterKind.BLUR: KERNEL_BLUR,
    FilterKind.LAPLACE: KERNEL_LAPLACE,
    FilterKind.SHARPEN: KERNEL_SHARPEN,
}


def resolve_kernel(kind, weights=None, normalize=False):
    """Turn a filter choice into a concrete Kernel, once per job."""
    if kind is FilterKind.CUSTOM:
        if weights is None:
            raise ConfigurationError("A custom filter needs weights")
        return Kernel(weights, normalize=normalize)
    if weights is not None:
        raise ConfigurationError(f"Filter {kind.value!r} has fixed weights")
    return Kernel(PRESETS[kind], normalize=normalize)


def get_kernel(name):
    """Look up one of the named presets: blur, laplace or sharpen."""
    try:
        kind = FilterKind(name)
    except ValueError:
        kind = None
    if kind is None or kind is FilterKind.CUSTOM:
        raise ConfigurationError(
            f"Unknown filter: {name!r} (expected one of {', '.join(k.value for k in PRESETS)})")
    return resolve_kernel(kind)


def identity_kernel(size=3):
    w = np.zeros((size, size), dtype=float)
    w[size // 2, size // 2] = 1.0
    return Kernel(w)
