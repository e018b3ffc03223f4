# SPDX-License-Identifier: Apache-2.0
"""
PDF Compositor - CLI Tool

Applies edit operations recorded on a page preview (masks, text, images,
freehand strokes) to the original PDF.

Usage:
    edit-pdf <input.pdf> <operations.json> --raster-height N [options]

Examples:
    edit-pdf form.pdf edits.json --raster-height 1000
    edit-pdf form.pdf edits.json --raster-height 1000 -o ./filled.pdf
    edit-pdf form.pdf edits.json --raster-height 1000 --font-dir ./fonts
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import NoReturn

from pdf_compositor.core.font_manager import FontCatalog
from pdf_compositor.core.models import load_operations
from pdf_compositor.pipeline.export_pipeline import ExportConfig, ExportPipeline

logger = logging.getLogger(__name__)

# Default output directory
DEFAULT_OUTPUT_DIR = "./output/"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument Namespace.
    """
    parser = argparse.ArgumentParser(
        prog="edit-pdf",
        description="PDF Compositor - Bakes preview edit operations into a PDF",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s form.pdf edits.json --raster-height 1000
  %(prog)s form.pdf edits.json --raster-height 1000 -o out.pdf
  %(prog)s form.pdf edits.json --raster-height 1000 --font-dir ~/.fonts
  %(prog)s form.pdf edits.json --raster-height 1000 --compress
  %(prog)s form.pdf edits.json --raster-height 1000 --image-errors abort

Operations file:
  JSON array of operations, or {"version": ..., "operations": [...]}.
  Coordinates are preview pixels (origin top-left).
""",
    )

    parser.add_argument(
        "input",
        type=Path,
        help="Path to the source PDF",
    )
    parser.add_argument(
        "operations",
        type=Path,
        help="Path to the operations JSON file",
    )
    parser.add_argument(
        "--raster-height",
        type=float,
        required=True,
        help="Height in pixels of the page preview the operations were recorded on",
    )

    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help=f"Output file path (default: {DEFAULT_OUTPUT_DIR}<input>_edited.pdf)",
    )

    # Font options
    font_group = parser.add_argument_group("Font options")
    font_group.add_argument(
        "--font-dir",
        type=Path,
        action="append",
        default=[],
        metavar="DIR",
        help="Directory with .ttf/.otf fonts to register (repeatable)",
    )
    font_group.add_argument(
        "--no-subset",
        action="store_true",
        help="Embed full fonts instead of subsets",
    )

    # Layout options
    layout_group = parser.add_argument_group("Text placement options")
    layout_group.add_argument(
        "--baseline-ratio",
        type=float,
        default=None,
        help="Baseline offset below the text box top, as a fraction of font size (default: 0.85)",
    )
    layout_group.add_argument(
        "--use-font-metrics",
        action="store_true",
        help="Place the baseline using the font's real ascent",
    )

    parser.add_argument(
        "--image-errors",
        default="skip",
        choices=["skip", "abort"],
        help="What to do with undecodable images (default: skip)",
    )
    parser.add_argument(
        "--compress",
        action="store_true",
        help="Recompress the output with object streams",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    return parser.parse_args(argv)


def build_catalog(font_dirs: list[Path]) -> FontCatalog:
    """Create a font catalog with standard fonts plus fonts found in ``font_dirs``."""
    catalog = FontCatalog()
    for font_dir in font_dirs:
        catalog.register_directory(font_dir)
    return catalog


def build_config(args: argparse.Namespace) -> ExportConfig:
    """Create export configuration from CLI arguments."""
    config = ExportConfig(
        use_font_metrics=args.use_font_metrics,
        image_error_policy=args.image_errors,
        compress=args.compress,
        subset_fonts=not args.no_subset,
    )
    if args.baseline_ratio is not None:
        config.baseline_ratio = args.baseline_ratio
    return config


async def run(args: argparse.Namespace) -> int:
    """Execute export pipeline.

    Args:
        args: Command line arguments.

    Returns:
        Exit code (0: success, 1: failure).
    """
    input_path: Path = args.input

    if not input_path.exists():
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return 1

    if not args.operations.exists():
        print(f"Error: Operations file not found: {args.operations}", file=sys.stderr)
        return 1

    if args.raster_height <= 0:
        print("Error: --raster-height must be positive", file=sys.stderr)
        return 1

    try:
        operations = load_operations(args.operations.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        print(f"Error: Invalid operations file: {e}", file=sys.stderr)
        return 1

    try:
        catalog = build_catalog(args.font_dir)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.output:
        output_path: Path = args.output
    else:
        output_path = Path(DEFAULT_OUTPUT_DIR) / f"{input_path.stem}_edited.pdf"

    print(f"Input: {input_path}")
    print(f"Output: {output_path}")
    print(f"Operations: {len(operations)}")
    custom_count = len(catalog.custom_fonts())
    if custom_count:
        print(f"Custom fonts: {custom_count}")
    print()

    pipeline = ExportPipeline(catalog, build_config(args))

    try:
        result = await pipeline.export(
            input_path, operations, args.raster_height, output_path=output_path
        )
    except Exception as e:
        print(f"Error: Export failed: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1

    print(f"Complete: {output_path}")
    if result.stats:
        stats = result.stats
        print(f"  Applied: {stats.get('applied_operations', 0)}")
        print(f"  Skipped: {stats.get('skipped_operations', 0)}")
        print(f"  Embedded fonts: {stats.get('embedded_fonts', 0)}")
    for warning in result.warnings:
        print(f"  Warning: {warning}")

    return 0


def main() -> NoReturn:
    """Main entry point."""
    args = parse_args()

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    exit_code = asyncio.run(run(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
