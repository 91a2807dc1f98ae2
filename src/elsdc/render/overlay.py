"""
Overlay rendering of detected primitives.
"""

from elsdc.errors import RenderError
from elsdc.render.surface import ImageSurface
from elsdc.tracer import get_tracer, trace


def render_primitives(primitives, surface, config):
    """
    Draw every primitive onto surface.

    A primitive that fails to render is logged and skipped so the rest still
    draw. Returns the number of failures.
    """
    tracer = get_tracer()
    color = tuple(config.render.color)
    failures = 0

    for index, primitive in enumerate(primitives):
        thickness = primitive.default_thickness(
            scale=config.render.thickness_scale,
            min_thickness=config.render.min_thickness,
            max_thickness=config.render.max_thickness,
        )
        try:
            primitive.render(surface, color=color, thickness=thickness)
        except RenderError as e:
            failures += 1
            tracer.event(f"Skipping primitive {index}: {e}", level="WARN")
            continue
        tracer.event(f"Rendered {index}: {primitive.describe()}", level="DEBUG")

    return failures


@trace(label="create_overlay")
def create_overlay(grid, primitives, config):
    """
    Render primitives on top of a grayscale grid.

    Returns (ImageSurface, failure_count).
    """
    surface = ImageSurface.from_grayscale(grid)
    failures = render_primitives(primitives, surface, config)
    get_tracer().event(
        f"Overlay drawn: {len(primitives) - failures}/{len(primitives)} primitives"
    )
    return surface, failures
