"""
Command-line interface for the ELSDc bindings.

Provides commands for running detection on an image and writing a default
configuration file.
"""

import argparse
import sys

from elsdc.config import load_config, save_default_config
from elsdc.errors import ElsdcError
from elsdc.tracer import configure_tracer, get_tracer


def build_parser():
    parser = argparse.ArgumentParser(
        prog="elsdc",
        description="ELSDc: detect elliptical arcs and score their pairwise overlap",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Detect command
    detect_parser = subparsers.add_parser("detect", help="Detect primitives in an image")
    detect_parser.add_argument(
        "input",
        help="Input image file (PGM, or any format OpenCV reads)",
    )
    detect_parser.add_argument(
        "--output", "-o",
        default=None,
        help="Output overlay image; the matrix is written beside it as <stem>_matrix.txt",
    )
    detect_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log at DEBUG level",
    )
    detect_parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to YAML configuration file",
    )
    detect_parser.add_argument(
        "--library",
        default=None,
        help="Path to the native detector shared library",
    )
    detect_parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable runtime tracing",
    )
    detect_parser.add_argument(
        "--trace-file",
        default=None,
        help="Path to write trace logs",
    )
    detect_parser.add_argument(
        "--trace-json",
        action="store_true",
        help="Emit trace lines as JSON",
    )

    # Init config command
    init_parser = subparsers.add_parser("init-config", help="Create default config file")
    init_parser.add_argument(
        "--out", "-o",
        default="elsdc_config.yaml",
        help="Output path for config file",
    )

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "detect":
        return handle_detect(args)
    elif args.command == "init-config":
        return handle_init_config(args)

    return 0


def handle_detect(args):
    """Handle the detect command."""
    try:
        config = load_config(args.config)
    except ElsdcError as e:
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    # Config supplies tracing defaults; command-line flags override them
    tracing = config.tracing
    configure_tracer(
        enabled=tracing.enabled or args.trace or args.verbose or bool(args.trace_file) or args.trace_json,
        level="DEBUG" if args.verbose else tracing.level,
        file_path=args.trace_file or tracing.file_path,
        json_output=args.trace_json or tracing.json_output,
    )

    tracer = get_tracer()

    try:
        from elsdc.pipeline import run_detection

        if args.library:
            config.detector.library_path = args.library

        tracer.event(f"Processing image: {args.input}")
        with tracer.span("cli_detect", module="cli"):
            summary = run_detection(
                input_path=args.input,
                output_path=args.output,
                config=config,
            )

        print(f"\nDetection successful! Found {summary.primitive_count} primitives")
        print(f"  Overlay image: {summary.image_path}")
        print(f"  Compatibility matrix: {summary.matrix_path}")
        if summary.render_failures:
            print(f"  Primitives skipped while rendering: {summary.render_failures}")
        if summary.degraded_pairs:
            print(f"  Matrix entries degraded to 0.0: {len(summary.degraded_pairs)}")

        return 0

    except ElsdcError as e:
        tracer.event(f"Detection failed: {e}", level="ERROR")
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    finally:
        get_tracer().config.close()


def handle_init_config(args):
    """Handle the init-config command."""
    save_default_config(args.out)
    print(f"Default configuration saved to: {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
