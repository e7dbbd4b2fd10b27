"""
Error types raised by the convolution engine.
"""


class ConvolutionError(Exception):
    """Base class for every failure of a convolution job."""


class ConfigurationError(ConvolutionError, ValueError):
    """Bad job setup: unknown kernel, bad worker count, bad geometry."""


class ImageIOError(ConvolutionError, OSError):
    """The image codec could not open, read, parse or write a file."""


class DistributionError(ConvolutionError):
    """A worker did not receive (or return) the payload it was owed."""
