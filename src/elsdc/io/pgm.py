"""
Grayscale image loading for the detector.

PGM files are decoded directly (P5 binary and P2 ASCII, with '#' comments
in the header). Other formats go through OpenCV in grayscale mode.
"""

import os

import cv2
import numpy as np

from elsdc.errors import ImageReadError
from elsdc.tracer import get_tracer, trace

PGM_MAGIC = (b"P2", b"P5")


def _read_header(data, path):
    """
    Read magic, width, height and maxval tokens.

    Returns (tokens, raster_offset). The raster starts after the single
    whitespace byte that follows maxval.
    """
    tokens = []
    pos = 0
    size = len(data)
    while len(tokens) < 4:
        if pos >= size:
            raise ImageReadError(f"truncated PGM header: {path}", operation="read_pgm")
        ch = data[pos:pos + 1]
        if ch == b"#":
            end = data.find(b"\n", pos)
            pos = size if end < 0 else end + 1
        elif ch.isspace():
            pos += 1
        else:
            start = pos
            while pos < size and not data[pos:pos + 1].isspace() and data[pos:pos + 1] != b"#":
                pos += 1
            tokens.append(data[start:pos])
    return tokens, pos + 1


@trace(label="read_pgm")
def read_pgm(path):
    """
    Decode a PGM file into a float64 (height, width) grid.

    Raises ImageReadError on a missing file or malformed content.
    """
    tracer = get_tracer()

    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ImageReadError(f"cannot open {path}", operation="read_pgm", cause=e)

    if data[:2] not in PGM_MAGIC:
        raise ImageReadError(f"not a PGM file: {path}", operation="read_pgm")

    tokens, offset = _read_header(data, path)
    magic = tokens[0]
    try:
        width, height, maxval = (int(t) for t in tokens[1:4])
    except ValueError as e:
        raise ImageReadError(f"invalid PGM header in {path}", operation="read_pgm", cause=e)

    if width <= 0 or height <= 0:
        raise ImageReadError(f"invalid PGM size {width}x{height}: {path}", operation="read_pgm")
    if maxval == 0:
        tracer.event(f"maxval=0 in {path}, probably not a valid PGM", level="WARN")

    expected = width * height
    if magic == b"P5":
        dtype = np.dtype(np.uint8) if maxval < 256 else np.dtype(">u2")
        raster = data[offset:offset + expected * dtype.itemsize]
        if len(raster) < expected * dtype.itemsize:
            raise ImageReadError(
                f"truncated raster: expected {expected} samples in {path}", operation="read_pgm"
            )
        grid = np.frombuffer(raster, dtype=dtype)
    else:
        lines = [
            line for line in data[offset - 1:].splitlines()
            if not line.lstrip().startswith(b"#")
        ]
        try:
            grid = np.array(b" ".join(lines).split(), dtype=np.float64)
        except ValueError as e:
            raise ImageReadError(f"invalid pixel value in {path}", operation="read_pgm", cause=e)
        if grid.size < expected:
            raise ImageReadError(
                f"expected {expected} samples, found {grid.size} in {path}", operation="read_pgm"
            )
        grid = grid[:expected]

    tracer.event(f"Read {magic.decode()} image: {width}x{height}, maxval={maxval}")
    return grid.astype(np.float64).reshape(height, width)


def scale_data(grid, max_value=255.0):
    """Linearly rescale samples into [0, max_value]. A flat image maps to zeros."""
    grid = np.asarray(grid, dtype=np.float64)
    low = grid.min()
    high = grid.max()
    if high == low:
        return np.zeros_like(grid)
    return (grid - low) / (high - low) * max_value


@trace(label="load_image")
def load_image(path, config=None):
    """
    Load any supported image as a float64 grayscale grid.

    Raises ImageReadError if the file is missing or cannot be decoded.
    """
    tracer = get_tracer()

    if not os.path.exists(path):
        raise ImageReadError(f"image not found: {path}", operation="load_image")

    if path.lower().endswith(".pgm"):
        grid = read_pgm(path)
    else:
        img = cv2.imread(path, cv2.IMREAD_GRAYSCALE)
        if img is None:
            raise ImageReadError(f"failed to decode image: {path}", operation="load_image")
        grid = img.astype(np.float64)
        tracer.event(f"Loaded image via OpenCV: {grid.shape[1]}x{grid.shape[0]}")

    if config is not None and config.image.normalize:
        grid = scale_data(grid, config.image.normalize_max)

    return grid
