# SPDX-License-Identifier: Apache-2.0
"""Tests for text_layout module."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest

from pdf_compositor.core.pdf_processor import PDFProcessor
from pdf_compositor.core.text_layout import TextLayoutEngine


@pytest.fixture
def helvetica(blank_pdf: bytes) -> Iterator[Any]:
    """Helvetica font handle, valid while the fixture is active."""
    with PDFProcessor(blank_pdf) as processor:
        yield processor.load_standard_font("Helvetica")


class TestTextLayoutEngine:
    """Tests for TextLayoutEngine."""

    def test_empty_text_width(self, helvetica: Any) -> None:
        assert TextLayoutEngine().calculate_text_width("", helvetica, 12) == 0.0

    def test_width_depends_on_glyphs(self, helvetica: Any) -> None:
        engine = TextLayoutEngine()
        narrow = engine.calculate_text_width("iiii", helvetica, 12)
        wide = engine.calculate_text_width("WWWW", helvetica, 12)
        assert 0 < narrow < wide

    def test_width_scales_with_size(self, helvetica: Any) -> None:
        engine = TextLayoutEngine()
        small = engine.calculate_text_width("Hello", helvetica, 10)
        large = engine.calculate_text_width("Hello", helvetica, 20)
        assert large == pytest.approx(small * 2, rel=1e-3)

    def test_ascent(self, helvetica: Any) -> None:
        ascent = TextLayoutEngine().get_ascent(helvetica, 10)
        assert ascent is not None
        assert 5 < ascent < 12

    def test_line_height(self) -> None:
        assert TextLayoutEngine().get_line_height(10) == pytest.approx(12)
        assert TextLayoutEngine(1.5).get_line_height(10) == pytest.approx(15)

    def test_lines_advance_downward(self, helvetica: Any) -> None:
        lines = TextLayoutEngine().layout_lines("one\ntwo\r\nthree", helvetica, 10, 50, 700)

        assert [line.text for line in lines] == ["one", "two", "three"]
        assert [line.y for line in lines] == pytest.approx([700, 688, 676])
        assert all(line.x == 50 for line in lines)

    def test_empty_lines_keep_spacing(self, helvetica: Any) -> None:
        lines = TextLayoutEngine().layout_lines("a\n\nb", helvetica, 10, 0, 100)
        assert [line.text for line in lines] == ["a", "", "b"]
        assert lines[2].y == pytest.approx(76)

    @pytest.mark.parametrize("alignment", ["center", "right"])
    def test_alignment(self, helvetica: Any, alignment: str) -> None:
        engine = TextLayoutEngine()
        (line,) = engine.layout_lines("Hi", helvetica, 10, 100, 500, 200, alignment)
        slack = 200 - line.width
        expected = 100 + (slack / 2 if alignment == "center" else slack)
        assert line.x == pytest.approx(expected)

    def test_overflowing_line_keeps_left_edge(self, helvetica: Any) -> None:
        (line,) = TextLayoutEngine().layout_lines("Wide text", helvetica, 10, 100, 500, 5, "right")
        assert line.x == pytest.approx(100)

    def test_unknown_alignment_is_left(self, helvetica: Any) -> None:
        (line,) = TextLayoutEngine().layout_lines("Hi", helvetica, 10, 100, 500, 200, "justify")
        assert line.x == pytest.approx(100)
