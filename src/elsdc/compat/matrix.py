"""
Compatibility matrix: pairwise IoU over one detection result set.
"""

import cv2
import numpy as np

from elsdc.compat.iou import iou
from elsdc.errors import RasterizationError
from elsdc.tracer import get_tracer, trace

PAIR_ERRORS = (RasterizationError, cv2.error, ValueError, OverflowError)


@trace(label="compatibility_matrix")
def compatibility_matrix(primitives, config):
    """
    Build the symmetric N x N IoU matrix.

    Each unordered pair is scored once and mirrored; the diagonal is 1.0.
    A pair that fails to rasterize scores 0.0 instead of aborting the rest.

    Returns (matrix, degraded_pairs), where matrix is a read-only float64
    array and degraded_pairs lists the (i, j) entries that were zeroed.
    """
    tracer = get_tracer()
    n = len(primitives)
    matrix = np.zeros((n, n), dtype=np.float64)
    degraded = []

    for i in range(n):
        matrix[i, i] = 1.0
        for j in range(i + 1, n):
            try:
                score = iou(primitives[i], primitives[j], config)
            except PAIR_ERRORS as e:
                tracer.event(f"IoU({i}, {j}) degraded to 0.0: {e}", level="WARN")
                degraded.append((i, j))
                score = 0.0
            matrix[i, j] = score
            matrix[j, i] = score

    tracer.event(f"Compatibility matrix {n}x{n}, {len(degraded)} degraded pairs")

    matrix.setflags(write=False)
    return matrix, degraded
