"""
Result writing for the ELSDc bindings.

Handles the compatibility-matrix text dump, overlay images, and the JSON run
summary. Filesystem failures surface as ElsdcIOError.
"""

import json
import os

import cv2
import numpy as np

from elsdc.errors import ElsdcIOError
from elsdc.tracer import get_tracer


def ensure_dir(path):
    """Create directory if it does not exist."""
    if path:
        os.makedirs(path, exist_ok=True)


def save_matrix(matrix, path, precision=4):
    """
    Write a matrix as whitespace-separated rows, one per line, no header.

    The file is overwritten.
    """
    tracer = get_tracer()
    fmt = f"{{:.{precision}f}}"

    try:
        ensure_dir(os.path.dirname(path))
        with open(path, "w", encoding="utf-8") as f:
            for row in np.asarray(matrix):
                f.write(" ".join(fmt.format(float(v)) for v in row))
                f.write("\n")
    except OSError as e:
        raise ElsdcIOError(f"cannot write matrix to {path}", operation="save_matrix", cause=e)

    tracer.event(f"Saved matrix: {path}")


def load_matrix(path):
    """Parse a matrix written by save_matrix back into a float64 array."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            rows = [line.split() for line in f if line.strip()]
    except OSError as e:
        raise ElsdcIOError(f"cannot read matrix from {path}", operation="load_matrix", cause=e)

    if not rows:
        return np.zeros((0, 0), dtype=np.float64)
    return np.array(rows, dtype=np.float64)


def save_image(img, path):
    """Save a BGR or grayscale uint8 image to disk."""
    tracer = get_tracer()

    try:
        ensure_dir(os.path.dirname(path))
        ok = cv2.imwrite(path, img)
    except (OSError, cv2.error) as e:
        raise ElsdcIOError(f"cannot write image to {path}", operation="save_image", cause=e)
    if not ok:
        raise ElsdcIOError(f"OpenCV refused to write {path}", operation="save_image")

    tracer.event(f"Saved image: {path}")


def save_json(data, path, indent=2):
    """
    Save a dictionary or Pydantic model to JSON.
    """
    tracer = get_tracer()

    if hasattr(data, "model_dump"):
        data = data.model_dump()

    try:
        ensure_dir(os.path.dirname(path))
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent, default=str)
    except OSError as e:
        raise ElsdcIOError(f"cannot write JSON to {path}", operation="save_json", cause=e)

    tracer.event(f"Saved JSON: {path}")
