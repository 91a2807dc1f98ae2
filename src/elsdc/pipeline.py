"""
End-to-end run for one image.

Loads the image, runs the native detector, scores every primitive pair,
draws the overlay and writes the results.
"""

import os

from elsdc.compat.matrix import compatibility_matrix
from elsdc.config import load_config
from elsdc.io.pgm import load_image
from elsdc.io.save_artifacts import save_image, save_json, save_matrix
from elsdc.models import RunSummary
from elsdc.native.detector import Detector
from elsdc.render.overlay import create_overlay
from elsdc.tracer import get_tracer, trace


def resolve_output_paths(output_path, config):
    """
    Work out where the overlay image and the matrix go.

    With an explicit output image, the matrix sits beside it as
    `<stem>_matrix.txt`; otherwise both come from config.
    """
    if output_path:
        stem, _ = os.path.splitext(output_path)
        return output_path, f"{stem}_matrix.txt"
    return config.output.image_path, config.output.matrix_path


def summary_path_for(matrix_path):
    stem, _ = os.path.splitext(matrix_path)
    if stem.endswith("_matrix"):
        stem = stem[: -len("_matrix")]
    return f"{stem}_summary.json"


@trace(label="run_detection", arg_names=["input_path"])
def run_detection(input_path, output_path=None, config=None, config_path=None, detector=None):
    """
    Run the full pipeline over one image.

    Args:
        input_path: grayscale image (PGM or anything OpenCV can decode)
        output_path: overlay image path (optional)
        config: ElsdcConfig object (optional)
        config_path: path to YAML config file (optional)
        detector: Detector to use; one is built from config if omitted

    Returns:
        RunSummary describing the run

    Raises ImageReadError or DetectionError when the image cannot be
    processed; ElsdcIOError when results cannot be written.
    """
    tracer = get_tracer()

    if config is None:
        config = load_config(config_path)

    image_path, matrix_path = resolve_output_paths(output_path, config)

    with tracer.span("load", module="pipeline"):
        grid = load_image(input_path, config)

    with tracer.span("detect", module="pipeline"):
        if detector is None:
            detector = Detector(config=config)
        result = detector.detect(grid)

    with tracer.span("compatibility", module="pipeline"):
        matrix, degraded = compatibility_matrix(result.primitives, config)

    with tracer.span("render", module="pipeline"):
        overlay, render_failures = create_overlay(grid, result.primitives, config)

    with tracer.span("save", module="pipeline"):
        save_image(overlay.as_array(), image_path)
        save_matrix(matrix, matrix_path, precision=config.output.precision)

        summary = RunSummary(
            input_path=os.path.abspath(input_path),
            image_width=result.image_width,
            image_height=result.image_height,
            primitive_count=result.count,
            primitives=result.primitives,
            image_path=image_path,
            matrix_path=matrix_path,
            render_failures=render_failures,
            degraded_pairs=degraded,
        )

        if config.output.write_summary:
            save_json(summary, summary_path_for(matrix_path))

    tracer.event(f"Run complete: {result.count} primitives, {len(degraded)} degraded pairs")

    return summary
