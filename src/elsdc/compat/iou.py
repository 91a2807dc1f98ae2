"""
Pairwise overlap (IoU) between two elliptical primitives.

Partial arcs have no tractable closed-form overlap, so both shapes are filled
onto binary masks of a shared canvas and the set pixels are compared. The
first primitive sits at the canvas center; the second is offset by the
center-to-center vector rounded to whole pixels.
"""

import math

import numpy as np

from elsdc.errors import RasterizationError
from elsdc.render.surface import MaskSurface


def pixel_offset(p, q):
    """
    Whole-pixel offset of q's center from p's.

    Both shapes are rasterized on pixel centers, so each mask depends only on
    its own shape and the pair differs by an exact integer translation.
    pixel_offset(q, p) is the negation of pixel_offset(p, q).
    """
    return round(q.cx - p.cx), round(q.cy - p.cy)


def pair_canvas(p, q, margin=2):
    """
    Side length of a square canvas holding both primitives unclipped.

    Never smaller than ceil(2 * (center_distance + max_axis)); grown further
    when the rotated bounding boxes of either shape would not fit around the
    center with `margin` pixels to spare. Always odd, so the center lands on
    a pixel.
    """
    dx, dy = pixel_offset(p, q)
    distance = math.hypot(dx, dy)
    max_axis = max(p.max_axis, q.max_axis)
    baseline = int(math.ceil(2.0 * (distance + max_axis)))

    hpx, hpy = p.half_extents()
    hqx, hqy = q.half_extents()
    half = max(hpx, hpy, abs(dx) + hqx, abs(dy) + hqy) + margin
    exact = 2 * int(math.ceil(half)) + 1

    side = max(baseline, exact)
    if side % 2 == 0:
        side += 1
    return side


def boxes_disjoint(p, q, margin=2):
    """True when the two bounding boxes are separated by more than margin pixels."""
    hpx, hpy = p.half_extents()
    hqx, hqy = q.half_extents()
    return (
        abs(q.cx - p.cx) > hpx + hqx + margin
        or abs(q.cy - p.cy) > hpy + hqy + margin
    )


def rasterize_pair(p, q, margin=2, max_side=4096):
    """
    Fill p and q onto two masks of a shared canvas.

    Returns (mask_p, mask_q) as boolean arrays.
    """
    side = pair_canvas(p, q, margin)
    if side > max_side:
        raise RasterizationError(
            f"canvas side {side} exceeds limit {max_side}", operation="rasterize_pair"
        )

    c = (side - 1) / 2.0
    mask_p = MaskSurface.blank(side)
    mask_q = MaskSurface.blank(side)
    p.fill(mask_p, center=(c, c))
    dx, dy = pixel_offset(p, q)
    q.fill(mask_q, center=(c + dx, c + dy))
    return mask_p.as_bool(), mask_q.as_bool()


def iou(p, q, config):
    """
    Intersection over union of the filled regions of p and q.

    Returns 0.0 when the union is empty or the shapes cannot touch.
    """
    margin = config.compat.canvas_margin
    if boxes_disjoint(p, q, margin):
        return 0.0

    mask_p, mask_q = rasterize_pair(p, q, margin, config.compat.max_canvas_side)
    union = np.count_nonzero(np.logical_or(mask_p, mask_q))
    if union == 0:
        return 0.0
    intersection = np.count_nonzero(np.logical_and(mask_p, mask_q))
    return intersection / union
