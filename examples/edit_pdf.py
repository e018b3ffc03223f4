#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0
"""PDF edit sample script

Shows the basic use of pdf-compositor: a handful of edit operations
recorded against a 1000px-high preview are baked into a PDF.
Change the settings below to try different export options.

Usage:
    cd examples
    python edit_pdf.py
"""

from __future__ import annotations

import asyncio
import io
import sys
from pathlib import Path

# Add the project root to the path (for development)
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))


# =============================================================================
# Settings - change these to customize behavior
# =============================================================================

# Height in pixels of the preview image the operations were recorded on
RASTER_PAGE_HEIGHT = 1000.0

# Directory scanned for TrueType/OpenType fonts (None = base-14 fonts only)
FONT_DIR: Path | None = None

# Text baseline as a fraction of the font size below the box top
BASELINE_RATIO = 0.85

# Unsupported images: "skip" keeps exporting, "abort" fails the export
IMAGE_ERRORS = "skip"

# Compress the output with pikepdf
COMPRESS = True

# Input / output paths (a blank letter page is generated if INPUT_PDF is missing)
INPUT_PDF = PROJECT_ROOT / "tests" / "fixtures" / "sample.pdf"
OUTPUT_DIR = Path(__file__).parent / "outputs"

# =============================================================================
# Main (normally no changes needed)
# =============================================================================


def blank_letter_pdf() -> bytes:
    """Create a one page US letter document."""
    import pypdfium2 as pdfium  # type: ignore[import-untyped]

    pdf = pdfium.PdfDocument.new()
    try:
        pdf.new_page(612, 792)
        buffer = io.BytesIO()
        pdf.save(buffer)
        return buffer.getvalue()
    finally:
        pdf.close()


def sample_operations() -> list:
    """Operations as an editor would record them: mask before its text."""
    from pdf_compositor import (
        DrawPathOperation,
        MaskOperation,
        TextEditOperation,
        TextStyle,
    )

    return [
        MaskOperation(id="mask-1", page_number=1, x=90, y=190, width=420, height=40),
        TextEditOperation(
            id="text-1",
            page_number=1,
            text="Replaced heading",
            x=100,
            y=200,
            width=400,
            height=24,
            style=TextStyle(font_id="helvetica-bold", font_size=24, color="#1a237e"),
        ),
        TextEditOperation(
            id="text-2",
            page_number=1,
            text="Inserted note on a new line\nwith a second line.",
            x=100,
            y=300,
            width=400,
            height=40,
            style=TextStyle(font_id="times-roman", font_size=16),
        ),
        DrawPathOperation(
            id="stroke-1",
            page_number=1,
            path=(("M", 100, 250), ("Q", 300, 230, 500, 250)),
            color="#e53935",
            stroke_width=3,
        ),
    ]


async def main() -> None:
    """Main entry."""
    from pdf_compositor import ExportConfig, FontCatalog, export_edited_pdf

    source = INPUT_PDF if INPUT_PDF.exists() else blank_letter_pdf()

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    output_pdf = OUTPUT_DIR / "edited.pdf"

    print("=" * 60)
    print("PDF Edit Example")
    print("=" * 60)
    print(f"Input:         {INPUT_PDF if isinstance(source, Path) else '(blank page)'}")
    print(f"Output:        {output_pdf}")
    print(f"Raster height: {RASTER_PAGE_HEIGHT} px")
    print(f"Font dir:      {FONT_DIR}")
    print(f"Image errors:  {IMAGE_ERRORS}")
    print(f"Compress:      {COMPRESS}")
    print("=" * 60)

    catalog = FontCatalog()
    if FONT_DIR is not None:
        catalog.register_directory(FONT_DIR)

    config = ExportConfig(
        baseline_ratio=BASELINE_RATIO,
        image_error_policy=IMAGE_ERRORS,
        compress=COMPRESS,
    )

    print("\nExporting PDF...")
    result = await export_edited_pdf(
        source,
        sample_operations(),
        RASTER_PAGE_HEIGHT,
        catalog=catalog,
        config=config,
        output_path=output_pdf,
    )

    print("\n" + "=" * 60)
    if not result.success:
        print(f"Export failed: {result.error}")
        sys.exit(1)

    print("Export Complete!")
    print("=" * 60)
    print(f"Operations applied: {result.stats['applied_operations']}")
    print(f"Operations skipped: {result.stats['skipped_operations']}")
    for warning in result.warnings:
        print(f"Warning:            {warning}")
    print(f"Output file:        {output_pdf}")
    print(f"File size:          {output_pdf.stat().st_size / 1024:.1f} KB")

    print("\nDone!")


if __name__ == "__main__":
    asyncio.run(main())
