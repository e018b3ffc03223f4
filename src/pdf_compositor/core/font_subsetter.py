# SPDX-License-Identifier: Apache-2.0
"""Font subsetting using fonttools.

This module reduces a font binary to the glyphs needed for the text
actually placed in the document, keeping embedded fonts small.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from pdf_compositor.errors import SubsettingError

logger = logging.getLogger(__name__)

# Always kept so the subset stays structurally valid with sparse usage
BASELINE_CHARS = " ."


@dataclass
class SubsetConfig:
    """Font subsetting configuration."""

    baseline_chars: str = BASELINE_CHARS
    retain_hinting: bool = True
    font_number: int = 0  # index inside TTC collections


@dataclass
class SubsetResult:
    """Outcome of a subsetting attempt.

    Attributes:
        data: Font binary to embed (subset, or the full font on failure)
        subsetted: False when the full font is returned
        original_size: Size of the input font in bytes
        subset_size: Size of ``data`` in bytes
        error: Failure that caused the full-font fallback
    """

    data: bytes
    subsetted: bool
    original_size: int
    subset_size: int
    error: Optional[SubsettingError] = None


def _load_ttfont(font_data: bytes, font_number: int = 0):  # type: ignore[no-untyped-def]
    from fontTools.ttLib import TTFont  # type: ignore[import-untyped]

    buffer = io.BytesIO(font_data)
    if font_data[:4] == b"ttcf":
        return TTFont(buffer, fontNumber=font_number)
    return TTFont(buffer)


def has_truetype_outlines(font_data: bytes, font_number: int = 0) -> bool:
    """Check whether a font has TrueType (glyf) outlines.

    PDFium embeds custom fonts as TrueType programs; CFF-flavoured
    OpenType fonts may not render in every viewer.

    Returns:
        True for glyf-based fonts, False for CFF fonts or unreadable data.
    """
    try:
        font = _load_ttfont(font_data, font_number)
    except Exception:
        return False
    try:
        return "glyf" in font
    finally:
        font.close()


def code_points(texts: Union[str, Iterable[str]]) -> set[int]:
    """Unique Unicode code points of a text or a collection of texts."""
    if isinstance(texts, str):
        texts = [texts]
    points: set[int] = set()
    for text in texts:
        if text:
            points.update(ord(ch) for ch in text)
    return points


class FontSubsetter:
    """Font subsetter using fonttools.

    Creates subset fonts containing only the glyphs needed for specific
    texts. Composite glyph components, ``.notdef`` and metrics are kept.

    Example:
        subsetter = FontSubsetter()
        subset = subsetter.subset(font_bytes, "Hello world")
        # embed ``subset`` instead of ``font_bytes``
    """

    def __init__(self, config: SubsetConfig | None = None) -> None:
        """Initialize the font subsetter.

        Args:
            config: Subsetting configuration. Uses defaults if None.
        """
        self._config = config or SubsetConfig()

    @property
    def config(self) -> SubsetConfig:
        return self._config

    def subset(self, font_data: bytes, texts: Union[str, Iterable[str]]) -> bytes:
        """Create a subset font covering the characters of ``texts``.

        Args:
            font_data: Full font binary (TTF, OTF or TTC).
            texts: Text, or texts, that will be rendered with the font.

        Returns:
            Subset font binary. Never larger than ``font_data``.

        Raises:
            SubsettingError: If the font cannot be parsed or subset.
        """
        from fontTools.subset import Options, Subsetter  # type: ignore[import-untyped]

        if not font_data:
            raise SubsettingError("Font data is empty")

        unicodes = code_points(texts)
        unicodes.update(code_points(self._config.baseline_chars))

        try:
            font = _load_ttfont(font_data, self._config.font_number)
        except Exception as exc:
            raise SubsettingError("Could not parse font data", cause=exc) from exc

        try:
            options = Options()
            options.layout_features = ["*"]
            options.name_IDs = ["*"]
            options.name_languages = ["*"]
            options.notdef_glyph = True
            options.notdef_outline = True
            options.hinting = self._config.retain_hinting
            options.recalc_bounds = True

            subsetter = Subsetter(options=options)
            subsetter.populate(unicodes=sorted(unicodes))
            subsetter.subset(font)

            output = io.BytesIO()
            font.save(output)
            subset_data = output.getvalue()
        except Exception as exc:
            raise SubsettingError("Font subsetting failed", cause=exc) from exc
        finally:
            font.close()

        if len(subset_data) >= len(font_data):
            return font_data

        logger.debug(
            "Created subset font: %d code points, %d -> %d bytes",
            len(unicodes),
            len(font_data),
            len(subset_data),
        )
        return subset_data

    def subset_or_full(
        self, font_data: bytes, texts: Union[str, Iterable[str]]
    ) -> SubsetResult:
        """Subset a font, falling back to the full binary on failure.

        Args:
            font_data: Full font binary.
            texts: Text, or texts, that will be rendered with the font.

        Returns:
            SubsetResult; ``subsetted`` is False when the full font is used.
        """
        try:
            data = self.subset(font_data, texts)
        except SubsettingError as exc:
            logger.warning("Font subsetting failed, embedding full font: %s", exc)
            return SubsetResult(
                data=font_data,
                subsetted=False,
                original_size=len(font_data),
                subset_size=len(font_data),
                error=exc,
            )
        return SubsetResult(
            data=data,
            subsetted=data is not font_data,
            original_size=len(font_data),
            subset_size=len(data),
        )
