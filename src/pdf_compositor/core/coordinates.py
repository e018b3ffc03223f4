# SPDX-License-Identifier: Apache-2.0
"""Raster-space to PDF-space coordinate conversion.

Raster space is the preview image: origin at the top-left, y downward,
measured in pixels. PDF space is the page: origin at the bottom-left,
y upward, measured in points. The y flip happens here and nowhere else.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .models import BBox

# Fraction of the font size used as the distance from the top of the
# text box to the baseline when no font metrics are available.
DEFAULT_BASELINE_RATIO = 0.85


@dataclass(frozen=True)
class RasterTransform:
    """Conversion between raster pixels and PDF points for one page.

    Attributes:
        pdf_page_height: Page height in PDF units
        raster_page_height: Rendered preview height in pixels

    Example:
        >>> t = RasterTransform(pdf_page_height=792, raster_page_height=1000)
        >>> t.scale
        0.792
        >>> t.to_pdf_point(100, 200)
        (79.2, 633.6)
    """

    pdf_page_height: float
    raster_page_height: float

    def __post_init__(self) -> None:
        if self.pdf_page_height <= 0:
            raise ValueError(f"PDF page height must be positive, got {self.pdf_page_height}")
        if self.raster_page_height <= 0:
            raise ValueError(
                f"Raster page height must be positive, got {self.raster_page_height}"
            )

    @property
    def scale(self) -> float:
        """PDF units per raster pixel."""
        return self.pdf_page_height / self.raster_page_height

    def to_pdf_length(self, value: float) -> float:
        """Scale a raster length (size, font size, stroke width)."""
        return value * self.scale

    def to_pdf_point(self, x: float, y: float) -> tuple[float, float]:
        """Convert a raster point to PDF space (top-referenced y)."""
        return x * self.scale, self.pdf_page_height - y * self.scale

    def to_raster_point(self, pdf_x: float, pdf_y: float) -> tuple[float, float]:
        """Convert a PDF point back to raster space."""
        return pdf_x / self.scale, (self.pdf_page_height - pdf_y) / self.scale

    def to_pdf_size(self, width: float, height: float) -> tuple[float, float]:
        """Scale a raster size to PDF units."""
        return width * self.scale, height * self.scale

    def to_pdf_rect(self, x: float, y: float, width: float, height: float) -> BBox:
        """Convert a top-left anchored raster rectangle to a PDF bbox.

        The raster top-left corner becomes the PDF top-left corner, so the
        PDF origin (bottom-left) sits one scaled height lower.
        """
        pdf_x, pdf_top = self.to_pdf_point(x, y)
        pdf_width, pdf_height = self.to_pdf_size(width, height)
        return BBox(
            x0=pdf_x,
            y0=pdf_top - pdf_height,
            x1=pdf_x + pdf_width,
            y1=pdf_top,
        )

    def text_baseline(
        self,
        x: float,
        y: float,
        font_size: float,
        baseline_ratio: float = DEFAULT_BASELINE_RATIO,
        ascent: Optional[float] = None,
    ) -> tuple[float, float]:
        """Baseline origin for text whose box top-left is at raster (x, y).

        Args:
            x: Raster X of the text box
            y: Raster Y of the text box top
            font_size: Font size in raster pixels
            baseline_ratio: Baseline offset as a fraction of the PDF font size
            ascent: Measured font ascent in PDF units at the scaled size.
                Overrides ``baseline_ratio`` when given.

        Returns:
            (x, y) of the first baseline in PDF space.
        """
        pdf_x, pdf_top = self.to_pdf_point(x, y)
        if ascent is not None:
            offset = ascent
        else:
            offset = self.to_pdf_length(font_size) * baseline_ratio
        return pdf_x, pdf_top - offset
