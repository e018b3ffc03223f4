# SPDX-License-Identifier: Apache-2.0
"""Shared fixtures: in-memory PDFs, fonts and images."""

from __future__ import annotations

import pytest
from pdf_helpers import build_blank_pdf, build_image, build_test_font


@pytest.fixture
def blank_pdf() -> bytes:
    """Single-page US Letter PDF."""
    return build_blank_pdf()


@pytest.fixture
def two_page_pdf() -> bytes:
    """Two-page US Letter PDF."""
    return build_blank_pdf(page_count=2)


@pytest.fixture(scope="session")
def test_font() -> bytes:
    """TrueType font binary."""
    return build_test_font()


@pytest.fixture
def png_bytes() -> bytes:
    return build_image("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return build_image("JPEG")
