# SPDX-License-Identifier: Apache-2.0
"""Tests for font_manager module."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from pdf_helpers import build_test_font

from pdf_compositor.core.font_manager import (
    DEFAULT_FONT_ID,
    STANDARD_FONTS,
    FontCatalog,
    FontConfig,
    FontResourceManager,
    fallback_standard_font,
)
from pdf_compositor.errors import FontResolutionError


class CountingLoader:
    """Loader that counts calls and yields to the event loop before returning."""

    def __init__(self, data: bytes = b"font-bytes", delay: float = 0.01) -> None:
        self.calls = 0
        self.data = data
        self.delay = delay

    async def __call__(self) -> bytes:
        self.calls += 1
        await asyncio.sleep(self.delay)
        return self.data


# =============================================================================
# Tests for fallback_standard_font()
# =============================================================================


class TestFallbackStandardFont:
    """Tests for fallback_standard_font()."""

    @pytest.mark.parametrize(
        ("name", "bold", "italic", "expected"),
        [
            ("Noto Sans", False, False, "Helvetica"),
            ("Noto Sans", True, False, "Helvetica-Bold"),
            ("Arial", False, True, "Helvetica-Oblique"),
            ("Arial", True, True, "Helvetica-BoldOblique"),
            ("Times New Roman", False, False, "Times-Roman"),
            ("Georgia", True, True, "Times-BoldItalic"),
            ("DejaVu Sans Serif", False, False, "Helvetica"),
            ("Fira Code", True, False, "Courier-Bold"),
            ("JetBrains Mono", False, True, "Courier-Oblique"),
            ("", False, False, "Helvetica"),
        ],
    )
    def test_family_and_style(self, name: str, bold: bool, italic: bool, expected: str) -> None:
        assert fallback_standard_font(name, bold, italic) == expected


# =============================================================================
# Tests for FontCatalog
# =============================================================================


class TestFontCatalog:
    """Tests for FontCatalog."""

    def test_standard_fonts_registered(self) -> None:
        catalog = FontCatalog()
        ids = [config.id for config in catalog.list_fonts()]

        assert len(STANDARD_FONTS) == 9
        assert ids == [config.id for config in STANDARD_FONTS]
        assert catalog.default_font().id == DEFAULT_FONT_ID
        assert catalog.first_standard_font().id == "helvetica"  # type: ignore[union-attr]
        assert catalog.custom_fonts() == []

    def test_standard_font_needs_base_name(self) -> None:
        with pytest.raises(ValueError, match="standard_font"):
            FontConfig(id="x", name="X", is_standard=True)

    def test_empty_catalog(self) -> None:
        catalog = FontCatalog(include_standard=False)
        assert len(catalog) == 0
        assert catalog.first_standard_font() is None
        with pytest.raises(FontResolutionError, match="empty"):
            catalog.default_font()

    def test_default_falls_back_to_first_font(self) -> None:
        catalog = FontCatalog(include_standard=False)
        catalog.register_bytes("custom", "Custom", b"data")
        assert catalog.default_font().id == "custom"

    def test_register_duplicate_id(self) -> None:
        catalog = FontCatalog()
        with pytest.raises(ValueError, match="already registered"):
            catalog.register_bytes("helvetica", "Other", b"data")

    def test_register_bytes(self) -> None:
        catalog = FontCatalog()
        config = catalog.register_bytes("my-font", "My Font", b"data")

        assert "my-font" in catalog
        assert config.css_family == "My Font"
        assert catalog.custom_fonts() == [config]

    def test_register_url_is_lazy(self) -> None:
        catalog = FontCatalog()
        config = catalog.register_url("remote", "Remote Sans", "https://fonts.invalid/r.ttf")

        assert config.is_standard is False
        assert config.data is None
        assert config.loader is not None
        assert catalog.custom_fonts() == [config]

    def test_register_file(self, tmp_path: Path) -> None:
        path = tmp_path / "TestSans-Regular.ttf"
        path.write_bytes(build_test_font())
        (tmp_path / "broken.ttf").write_bytes(b"broken")

        catalog = FontCatalog()
        config = catalog.register_file(path)
        assert config is not None
        assert config.id == "local-testsans-regular"
        assert catalog.register_file(tmp_path / "broken.ttf") is None

    def test_register_directory(self, tmp_path: Path) -> None:
        (tmp_path / "sub").mkdir()
        (tmp_path / "TestSans-Regular.ttf").write_bytes(build_test_font())
        (tmp_path / "sub" / "TestSerif-Bold.otf").write_bytes(
            build_test_font("Test Serif", "Bold")
        )
        (tmp_path / "readme.txt").write_text("not a font")
        (tmp_path / "broken.ttf").write_bytes(b"broken")

        catalog = FontCatalog()
        registered = catalog.register_directory(tmp_path)

        assert sorted(config.id for config in registered) == [
            "local-testsans-regular",
            "local-testserif-bold",
        ]
        config = catalog.get("local-testsans-regular")
        assert config is not None
        assert config.name == "Test Sans Regular"
        assert config.css_family == "Test Sans"
        assert config.is_standard is False
        assert config.data is None
        assert config.loader is not None

    def test_register_directory_skips_duplicates_and_icons(self, tmp_path: Path) -> None:
        (tmp_path / "a.ttf").write_bytes(build_test_font())
        (tmp_path / "b.ttf").write_bytes(build_test_font())
        (tmp_path / "icons.ttf").write_bytes(build_test_font("Material Icons"))

        registered = FontCatalog().register_directory(tmp_path)
        assert [config.id for config in registered] == ["local-testsans-regular"]

    def test_register_directory_missing(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            FontCatalog().register_directory(tmp_path / "missing")


# =============================================================================
# Tests for FontResourceManager
# =============================================================================


class TestFontResourceManager:
    """Tests for FontResourceManager."""

    def test_is_standard(self) -> None:
        manager = FontResourceManager()
        assert manager.is_standard("times-bold") is True
        with pytest.raises(FontResolutionError, match="Unknown font"):
            manager.is_standard("nope")

    @pytest.mark.asyncio
    async def test_resolve_bytes(self) -> None:
        catalog = FontCatalog()
        catalog.register_bytes("custom", "Custom", b"abc")
        manager = FontResourceManager(catalog)

        assert manager.is_cached("custom") is False
        assert await manager.resolve("custom") == b"abc"
        assert manager.is_cached("custom") is True
        assert manager.get_cached("custom") == b"abc"

    @pytest.mark.asyncio
    async def test_concurrent_requests_coalesce(self) -> None:
        loader = CountingLoader()
        catalog = FontCatalog()
        catalog.register(FontConfig(id="lazy", name="Lazy", loader=loader))
        manager = FontResourceManager(catalog)

        results = await asyncio.gather(*(manager.resolve("lazy") for _ in range(5)))

        assert loader.calls == 1
        assert results == [b"font-bytes"] * 5

    @pytest.mark.asyncio
    async def test_cached_after_first_load(self) -> None:
        loader = CountingLoader()
        catalog = FontCatalog()
        catalog.register(FontConfig(id="lazy", name="Lazy", loader=loader))
        manager = FontResourceManager(catalog)

        await manager.resolve("lazy")
        await manager.resolve("lazy")
        assert loader.calls == 1

    @pytest.mark.asyncio
    async def test_distinct_ids_load_independently(self) -> None:
        first = CountingLoader(b"one")
        second = CountingLoader(b"two")
        catalog = FontCatalog()
        catalog.register(FontConfig(id="one", name="One", loader=first))
        catalog.register(FontConfig(id="two", name="Two", loader=second))
        manager = FontResourceManager(catalog)

        results = await manager.resolve_many(["one", "two", "one"])

        assert results == {"one": b"one", "two": b"two"}
        assert (first.calls, second.calls) == (1, 1)

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self) -> None:
        attempts = 0

        async def flaky() -> bytes:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise OSError("network down")
            return b"ok"

        catalog = FontCatalog()
        catalog.register(FontConfig(id="flaky", name="Flaky", loader=flaky))
        manager = FontResourceManager(catalog)

        with pytest.raises(FontResolutionError) as exc_info:
            await manager.resolve("flaky")
        assert isinstance(exc_info.value.cause, OSError)
        assert manager.is_cached("flaky") is False

        assert await manager.resolve("flaky") == b"ok"
        assert attempts == 2

    @pytest.mark.asyncio
    async def test_unknown_font(self) -> None:
        with pytest.raises(FontResolutionError, match="Unknown font"):
            await FontResourceManager().resolve("missing")

    @pytest.mark.asyncio
    async def test_standard_font_has_no_binary(self) -> None:
        with pytest.raises(FontResolutionError, match="Standard font"):
            await FontResourceManager().resolve("helvetica")

    @pytest.mark.asyncio
    async def test_empty_payload(self) -> None:
        catalog = FontCatalog()
        catalog.register(FontConfig(id="empty", name="Empty", loader=CountingLoader(b"")))
        with pytest.raises(FontResolutionError, match="empty"):
            await FontResourceManager(catalog).resolve("empty")

    @pytest.mark.asyncio
    async def test_config_without_source(self) -> None:
        catalog = FontCatalog()
        catalog.register(FontConfig(id="bare", name="Bare"))
        with pytest.raises(FontResolutionError, match="no data or loader"):
            await FontResourceManager(catalog).resolve("bare")

    @pytest.mark.asyncio
    async def test_file_loader(self, tmp_path: Path) -> None:
        font_data = build_test_font()
        (tmp_path / "font.ttf").write_bytes(font_data)
        catalog = FontCatalog()
        catalog.register_directory(tmp_path)
        manager = FontResourceManager(catalog)

        assert await manager.resolve("local-testsans-regular") == font_data

    @pytest.mark.asyncio
    async def test_preload_all_logs_failures(self, caplog: pytest.LogCaptureFixture) -> None:
        good = CountingLoader(b"good")
        catalog = FontCatalog()
        catalog.register(FontConfig(id="good", name="Good", loader=good))
        catalog.register(FontConfig(id="bad", name="Bad", loader=CountingLoader(b"")))
        manager = FontResourceManager(catalog)

        await manager.preload_all()

        assert manager.is_cached("good") is True
        assert manager.is_cached("bad") is False
        assert "Font preload failed for bad" in caplog.text
