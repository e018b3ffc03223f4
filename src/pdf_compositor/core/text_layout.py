# SPDX-License-Identifier: Apache-2.0
"""Text layout for placed text boxes.

This module provides:
- Text width calculation using FPDFFont_GetGlyphWidth
- Ascent / line height from PDFium font metrics
- Line placement for multi-line text with left/center/right alignment
"""

from __future__ import annotations

import ctypes
from dataclasses import dataclass

import pypdfium2 as pdfium  # type: ignore[import-untyped]

ALIGNMENTS = frozenset({"left", "center", "right"})


@dataclass
class LayoutLine:
    """A single line of laid out text.

    Attributes:
        text: Line content
        width: Measured width in points
        x: Baseline origin X in PDF space
        y: Baseline origin Y in PDF space
    """

    text: str
    width: float
    x: float
    y: float


class TextLayoutEngine:
    """Places text lines inside a text box using PDFium font metrics."""

    def __init__(self, line_height_factor: float = 1.2) -> None:
        """Initialize TextLayoutEngine.

        Args:
            line_height_factor: Line advance as a multiple of the font size.
        """
        self._line_height_factor = line_height_factor

    @property
    def line_height_factor(self) -> float:
        return self._line_height_factor

    def calculate_text_width(
        self,
        text: str,
        font_handle: ctypes.c_void_p,
        font_size: float,
    ) -> float:
        """Calculate the width of text using font metrics.

        Args:
            text: Text to measure.
            font_handle: PDFium font handle (FPDF_FONT).
            font_size: Font size in points.

        Returns:
            Total width in points. Characters without a glyph count as zero.
        """
        if not text:
            return 0.0

        total_width = 0.0
        width_out = ctypes.c_float()

        for char in text:
            result = pdfium.raw.FPDFFont_GetGlyphWidth(
                font_handle,
                ord(char),
                ctypes.c_float(font_size),
                ctypes.byref(width_out),
            )
            if result:
                total_width += width_out.value

        return total_width

    def get_ascent(
        self,
        font_handle: ctypes.c_void_p,
        font_size: float,
    ) -> float | None:
        """Get font ascent (distance from baseline to top).

        Args:
            font_handle: PDFium font handle (FPDF_FONT).
            font_size: Font size in points.

        Returns:
            Ascent in points, or None if PDFium reports no metrics.
        """
        ascent = ctypes.c_float()
        ok = pdfium.raw.FPDFFont_GetAscent(
            font_handle,
            ctypes.c_float(font_size),
            ctypes.byref(ascent),
        )
        if not ok or ascent.value <= 0:
            return None
        return ascent.value

    def get_line_height(self, font_size: float) -> float:
        """Baseline-to-baseline distance for a font size."""
        return font_size * self._line_height_factor

    def layout_lines(
        self,
        text: str,
        font_handle: ctypes.c_void_p,
        font_size: float,
        origin_x: float,
        first_baseline_y: float,
        box_width: float = 0.0,
        alignment: str = "left",
    ) -> list[LayoutLine]:
        """Place each line of ``text``.

        Lines are split on explicit line breaks only; there is no wrapping.
        Center/right alignment offsets each line inside ``box_width``; lines
        wider than the box keep the left edge.

        Args:
            text: Text content (may contain ``\\n``).
            font_handle: PDFium font handle.
            font_size: Font size in points.
            origin_x: Left edge of the text box in PDF space.
            first_baseline_y: Baseline of the first line in PDF space.
            box_width: Text box width in points.
            alignment: "left", "center" or "right".

        Returns:
            One LayoutLine per line, top to bottom. Empty lines are kept so
            following lines stay in place.
        """
        if alignment not in ALIGNMENTS:
            alignment = "left"

        line_height = self.get_line_height(font_size)
        lines = []
        for index, line_text in enumerate(text.replace("\r\n", "\n").split("\n")):
            width = self.calculate_text_width(line_text, font_handle, font_size)
            slack = max(0.0, box_width - width)
            if alignment == "center":
                local_x = slack / 2
            elif alignment == "right":
                local_x = slack
            else:
                local_x = 0.0
            lines.append(
                LayoutLine(
                    text=line_text,
                    width=width,
                    x=origin_x + local_x,
                    y=first_baseline_y - index * line_height,
                )
            )
        return lines
