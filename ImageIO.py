"""
Image loading and saving.

The plain-text formats carry a magic token (P2 grayscale, P3 rgb), a
`width height` line, a max value line, and then the samples. Anything else
goes through Pillow and comes back as 8-bit grayscale or RGB.
"""
import logging
from pathlib import Path

import numpy as np
from PIL import Image

from Errors import ConfigurationError, ImageIOError
from PixelBuffer import FORMATS, PixelBuffer, from_array

logger = logging.getLogger(__name__)

PLAIN_SUFFIXES = {".pgm", ".ppm", ".pnm"}
MAGIC_TO_FORMAT = {magic: tag for tag, (_, magic) in FORMATS.items()}

GRAYSCALE_MODES = {"1", "L", "LA", "I", "I;16", "F"}


def _tokens(text):
    for line in text.splitlines():
        line = line.split("#", 1)[0]
        yield from line.split()


def parse_plain(text):
    tokens = _tokens(text)
    try:
        magic = next(tokens)
        if magic not in MAGIC_TO_FORMAT:
            raise ImageIOError(f"Unsupported magic {magic!r} (expected P2 or P3)")
        width, height, max_value = int(next(tokens)), int(next(tokens)), int(next(tokens))
        samples = np.array([int(t) for t in tokens], dtype=np.int64)
    except StopIteration:
        raise ImageIOError("Truncated header") from None
    except (ValueError, OverflowError) as e:
        raise ImageIOError(f"Bad token in image data: {e}") from e

    try:
        return PixelBuffer(MAGIC_TO_FORMAT[magic], width, height, max_value, samples)
    except ConfigurationError as e:
        raise ImageIOError(str(e)) from e


def format_plain(buffer):
    magic = FORMATS[buffer.format_tag][1]
    lines = [magic, f"{buffer.width} {buffer.height}", str(buffer.max_value)]
    lines.extend(str(v) for v in buffer.samples.tolist())
    return "\n".join(lines) + "\n"


def load_image(path):
    path = Path(path)
    if path.suffix.lower() in PLAIN_SUFFIXES:
        try:
            text = path.read_text()
        except OSError as e:
            raise ImageIOError(f"Error opening file: {path}") from e
        buffer = parse_plain(text)
    else:
        try:
            with Image.open(path) as img:
                mode = "L" if img.mode in GRAYSCALE_MODES else "RGB"
                arr = np.array(img.convert(mode))
        except OSError as e:
            raise ImageIOError(f"Error opening file: {path}") from e
        buffer = from_array(arr, max_value=255)

    logger.debug("Loaded %s: %r", path, buffer)
    return buffer


def save_image(buffer, path):
    path = Path(path)
    if path.suffix.lower() in PLAIN_SUFFIXES:
        try:
            path.write_text(format_plain(buffer))
        except OSError as e:
            raise ImageIOError(f"Error saving file: {path}") from e
        return path

    arr = buffer.to_array()
    if buffer.max_value != 255:
        arr = (arr.astype(np.int64) * 255 // buffer.max_value).astype(np.uint8)
    try:
        Image.fromarray(arr).save(path)
    except (OSError, ValueError) as e:
        raise ImageIOError(f"Error saving file: {path}") from e
    return path
