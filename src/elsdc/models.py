"""
Pydantic data models for ELSDc detection results.

A Primitive is a pure value: it is copied out of the detector's native
record and never refers back to native memory.
"""

import math
from datetime import datetime
from typing import Any, List, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from elsdc.errors import RenderError

TWO_PI = 2.0 * math.pi

RECORD_FIELDS = (
    "x1", "y1", "x2", "y2", "width", "cx", "cy", "theta",
    "ax", "bx", "ang_start", "ang_end", "wmin", "wmax", "full",
)


class Primitive(BaseModel):
    """A detected elliptical arc, or a closed ellipse when `full` is set."""
    x1: float = 0.0  # arc endpoints, unused when full
    y1: float = 0.0
    x2: float = 0.0
    y2: float = 0.0
    width: float = Field(default=0.0, ge=0.0)
    cx: float
    cy: float
    theta: float = 0.0  # radians, major axis vs. +x, unnormalized
    ax: float = Field(..., ge=0.0)
    bx: float = Field(..., ge=0.0)
    ang_start: float = 0.0  # radians, in the ellipse's rotated frame
    ang_end: float = 0.0
    wmin: float = Field(default=0.0, ge=0.0)
    wmax: float = Field(default=0.0, ge=0.0)
    full: bool = False

    model_config = ConfigDict(extra="forbid", frozen=True)

    @classmethod
    def from_record(cls, record):
        """Copy one native Ring record into a standalone Primitive."""
        values = {name: getattr(record, name) for name in RECORD_FIELDS}
        values["full"] = bool(values["full"])
        return cls(**values)

    @property
    def center(self):
        return (self.cx, self.cy)

    @property
    def max_axis(self):
        return max(self.ax, self.bx)

    def angles_deg(self):
        """
        Return (rotation, start, end) in degrees for the drawing backend.

        Rotation is reduced modulo 360; a full primitive spans [0, 360).
        """
        rotation = math.degrees(self.theta % TWO_PI)
        if self.full:
            return rotation, 0.0, 360.0
        return rotation, math.degrees(self.ang_start), math.degrees(self.ang_end)

    def half_extents(self):
        """
        Half-width and half-height of the rotated ellipse's axis-aligned box.

        Holds for arcs too, since a wedge lies inside its full ellipse.
        Does not assume ax >= bx.
        """
        c = math.cos(self.theta)
        s = math.sin(self.theta)
        hx = math.hypot(self.ax * c, self.bx * s)
        hy = math.hypot(self.ax * s, self.bx * c)
        return hx, hy

    def default_thickness(self, scale=0.02, min_thickness=1, max_thickness=4):
        """Derived stroke thickness for display, not part of the geometry."""
        thickness = int(round((self.ax + self.bx) * scale))
        return max(min_thickness, min(max_thickness, thickness))

    def render(self, surface, color=(0, 255, 0), thickness=None):
        """
        Draw the outline of this primitive on a RasterSurface.

        Raises RenderError if the surface rejects the call.
        """
        rotation, start, end = self.angles_deg()
        if thickness is None:
            thickness = self.default_thickness()
        try:
            surface.draw_ellipse(
                self.center, (self.ax, self.bx), rotation, start, end,
                color=color, thickness=thickness,
            )
        except RenderError:
            raise
        except Exception as e:
            raise RenderError("surface rejected ellipse", operation="render", cause=e)

    def fill(self, surface, center=None, value=1):
        """
        Rasterize the filled region: a solid ellipse when full, otherwise the
        angular wedge between ang_start and ang_end. `center` moves the anchor.
        """
        rotation, start, end = self.angles_deg()
        surface.fill_ellipse(
            center if center is not None else self.center,
            (self.ax, self.bx), rotation, start, end, value=value,
        )

    def describe(self):
        """One-line human-readable summary."""
        kind = "ellipse" if self.full else "arc"
        text = (
            f"{kind} center=({self.cx:.2f}, {self.cy:.2f}) "
            f"axes=({self.ax:.2f}, {self.bx:.2f}) angle={self.theta:.4f}"
        )
        if not self.full:
            text += f" span=[{self.ang_start:.4f}, {self.ang_end:.4f}]"
        return text


class DetectionResult(BaseModel):
    """
    Everything one detector invocation produced, owned by the caller.

    `primitives` is in emission order; list index is the identity used by
    the compatibility matrix.
    """
    primitives: List[Primitive] = Field(default_factory=list)
    labels: List[int] = Field(default_factory=list)
    label_map: Any = None  # int32 ndarray (height, width)
    image_width: int = Field(default=0, ge=0)
    image_height: int = Field(default=0, ge=0)

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    @property
    def count(self):
        return len(self.primitives)

    def labels_at(self, x, y):
        """Label-map value at a pixel, 0 for background."""
        if self.label_map is None:
            return 0
        return int(np.asarray(self.label_map)[y, x])


class RunSummary(BaseModel):
    """Summary of a single pipeline run, saved as JSON next to the matrix."""
    input_path: str
    created_at: str = Field(default_factory=lambda: datetime.now().isoformat())
    image_width: int = 0
    image_height: int = 0
    primitive_count: int = 0
    primitives: List[Primitive] = Field(default_factory=list)
    image_path: Optional[str] = None
    matrix_path: Optional[str] = None
    render_failures: int = 0
    degraded_pairs: List[Tuple[int, int]] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")
