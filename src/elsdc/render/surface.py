"""
Raster surfaces that primitives draw onto.

RasterSurface names exactly the capabilities the primitive model and the
compatibility engine need. Each backend implements it directly, so callers
never have to inspect which concrete surface they were handed.
"""

import math
from abc import ABC, abstractmethod

import cv2
import numpy as np

from elsdc.errors import ImageConversionError, RenderError

# Fixed-point fractional bits passed to OpenCV drawing calls
DRAW_SHIFT = 4
_SCALE = 1 << DRAW_SHIFT

MAX_POLY_POINTS = 4096


class RasterSurface(ABC):
    """Mutable 2D raster that primitives can be drawn on."""

    @abstractmethod
    def width(self):
        ...

    @abstractmethod
    def height(self):
        ...

    @abstractmethod
    def get_pixel(self, x, y):
        ...

    @abstractmethod
    def set_pixel(self, x, y, value):
        ...

    @abstractmethod
    def as_array(self):
        """Raw buffer view for interop with image decoding and saving."""

    @abstractmethod
    def draw_ellipse(self, center, axes, angle, start, end, color, thickness):
        """Outline an elliptical arc. Angles in degrees."""

    @abstractmethod
    def fill_ellipse(self, center, axes, angle, start, end, value):
        """Fill an ellipse, or the wedge between start and end. Angles in degrees."""


def ellipse_polygon(center, axes, angle, start, end):
    """
    Sample the boundary of an elliptical wedge as float (x, y) points.

    Uses the same parametrization as cv2.ellipse2Poly, but in floating point
    and without rounding the angles to whole degrees. For a partial arc the
    center is appended so the polygon closes through it.
    """
    cx, cy = center
    a, b = axes
    span = end - start
    closed = span >= 360.0
    if closed:
        start, span = 0.0, 360.0

    span_rad = math.radians(span)
    n = int(math.ceil(max(a, b) * span_rad)) + 1
    n = max(16, min(MAX_POLY_POINTS, n))

    t = np.radians(start) + np.linspace(0.0, span_rad, n, endpoint=not closed)
    rot = math.radians(angle)
    cos_r, sin_r = math.cos(rot), math.sin(rot)
    xs = cx + a * np.cos(t) * cos_r - b * np.sin(t) * sin_r
    ys = cy + a * np.cos(t) * sin_r + b * np.sin(t) * cos_r
    points = np.stack([xs, ys], axis=1)

    if not closed:
        points = np.vstack([points, [[cx, cy]]])
    return points


class ArraySurface(RasterSurface):
    """Surface backed by a numpy uint8 array of shape (H, W) or (H, W, C)."""

    def __init__(self, array):
        if not isinstance(array, np.ndarray) or array.ndim not in (2, 3) or array.size == 0:
            raise ImageConversionError(
                f"expected a non-empty 2D or 3D array, got {type(array).__name__}",
                operation="surface",
            )
        self._array = array

    def width(self):
        return self._array.shape[1]

    def height(self):
        return self._array.shape[0]

    def _check_bounds(self, x, y):
        if not (0 <= x < self.width() and 0 <= y < self.height()):
            raise RenderError(
                f"pixel ({x}, {y}) outside {self.width()}x{self.height()} surface",
                operation="pixel",
            )

    def get_pixel(self, x, y):
        self._check_bounds(x, y)
        value = self._array[y, x]
        if self._array.ndim == 3:
            return tuple(int(v) for v in value)
        return int(value)

    def set_pixel(self, x, y, value):
        self._check_bounds(x, y)
        self._array[y, x] = value

    def as_array(self):
        return self._array

    def _color(self, value):
        channels = self._array.shape[2] if self._array.ndim == 3 else 1
        if np.isscalar(value):
            values = (int(value),) * channels
        else:
            values = tuple(int(v) for v in value)
        if channels == 1:
            return values[0]
        return values

    def draw_ellipse(self, center, axes, angle, start, end, color, thickness):
        cv2.ellipse(
            self._array,
            (int(round(center[0] * _SCALE)), int(round(center[1] * _SCALE))),
            (int(round(abs(axes[0]) * _SCALE)), int(round(abs(axes[1]) * _SCALE))),
            float(angle), float(start), float(end),
            self._color(color),
            int(thickness),
            cv2.LINE_8,
            DRAW_SHIFT,
        )

    def fill_ellipse(self, center, axes, angle, start, end, value):
        points = ellipse_polygon(center, (abs(axes[0]), abs(axes[1])), angle, start, end)
        fixed = np.round(points * _SCALE).astype(np.int32)
        cv2.fillPoly(self._array, [fixed], self._color(value), cv2.LINE_8, DRAW_SHIFT)


class ImageSurface(ArraySurface):
    """Three-channel BGR uint8 surface for visual overlays."""

    @classmethod
    def blank(cls, width, height):
        return cls(np.zeros((height, width, 3), dtype=np.uint8))

    @classmethod
    def from_grayscale(cls, grid):
        """
        Adapt a float grayscale grid to a BGR display surface.

        Values already in [0, 255] are kept; anything else is min-max
        normalized into that range.
        """
        grid = np.asarray(grid)
        if grid.ndim != 2 or grid.size == 0:
            raise ImageConversionError(
                f"expected a non-empty 2D grid, got shape {grid.shape}",
                operation="from_grayscale",
            )
        if not np.issubdtype(grid.dtype, np.number):
            raise ImageConversionError(
                f"expected numeric samples, got {grid.dtype}",
                operation="from_grayscale",
            )

        values = grid.astype(np.float64)
        if values.min() < 0.0 or values.max() > 255.0:
            values = cv2.normalize(values, None, 0.0, 255.0, cv2.NORM_MINMAX)
        gray = np.clip(np.round(values), 0, 255).astype(np.uint8)
        return cls(cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR))


class MaskSurface(ArraySurface):
    """Single-channel binary mask used for overlap scoring."""

    @classmethod
    def blank(cls, side):
        return cls(np.zeros((side, side), dtype=np.uint8))

    def count(self):
        """Number of set pixels."""
        return int(cv2.countNonZero(self._array))

    def as_bool(self):
        return self._array > 0
