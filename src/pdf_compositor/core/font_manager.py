# SPDX-License-Identifier: Apache-2.0
"""Font catalog and font resource management.

The catalog lists the fonts an editing session can use: the PDF standard
fonts (provided by every viewer, never embedded) plus custom fonts that
are registered at runtime and must be embedded. The resource manager
resolves custom font ids to their binaries, caching each one and
collapsing concurrent requests for the same id into a single load.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional, Union

from pdf_compositor.errors import FontResolutionError

logger = logging.getLogger(__name__)

FontLoader = Callable[[], Awaitable[bytes]]

DEFAULT_FONT_ID = "helvetica"

FONT_FILE_SUFFIXES = frozenset({".ttf", ".otf"})

# Families skipped during local font discovery
SKIPPED_FAMILY_MARKERS = ("Icon", "Symbol")


@dataclass
class FontConfig:
    """A font available to the editor.

    Attributes:
        id: Stable font identifier referenced by text styles
        name: Human-readable name
        css_family: Display family used by the preview
        is_standard: True for PDF standard fonts (no payload needed)
        standard_font: PDF base font name, e.g. "Helvetica-Bold"
        data: Font binary, when already in memory
        loader: Zero-argument callable returning an awaitable of the binary
    """

    id: str
    name: str
    css_family: str = "sans-serif"
    is_standard: bool = False
    standard_font: Optional[str] = None
    data: Optional[bytes] = field(default=None, repr=False)
    loader: Optional[FontLoader] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.is_standard and not self.standard_font:
            raise ValueError(f"Standard font {self.id!r} needs a standard_font name")


STANDARD_FONTS: tuple[FontConfig, ...] = (
    FontConfig("helvetica", "Helvetica", "Helvetica, Arial, sans-serif", True, "Helvetica"),
    FontConfig(
        "helvetica-bold", "Helvetica Bold", "Helvetica, Arial, sans-serif", True, "Helvetica-Bold"
    ),
    FontConfig(
        "helvetica-oblique",
        "Helvetica Oblique",
        "Helvetica, Arial, sans-serif",
        True,
        "Helvetica-Oblique",
    ),
    FontConfig("times-roman", "Times Roman", '"Times New Roman", Times, serif', True, "Times-Roman"),
    FontConfig("times-bold", "Times Bold", '"Times New Roman", Times, serif', True, "Times-Bold"),
    FontConfig(
        "times-italic", "Times Italic", '"Times New Roman", Times, serif', True, "Times-Italic"
    ),
    FontConfig("courier", "Courier", '"Courier New", Courier, monospace', True, "Courier"),
    FontConfig(
        "courier-bold", "Courier Bold", '"Courier New", Courier, monospace', True, "Courier-Bold"
    ),
    FontConfig(
        "courier-oblique",
        "Courier Oblique",
        '"Courier New", Courier, monospace',
        True,
        "Courier-Oblique",
    ),
)

SERIF_MARKERS = (
    "times",
    "roman",
    "serif",
    "nimbus",
    "palatino",
    "georgia",
    "garamond",
    "cambria",
    "book",
)
MONO_MARKERS = (
    "courier",
    "mono",
    "consola",
    "inconsolata",
    "menlo",
    "source code",
    "fira code",
)


def fallback_standard_font(name: str, bold: bool = False, italic: bool = False) -> str:
    """Pick a PDF standard font resembling a font that could not be used.

    Matches the family class (serif / monospace / sans-serif) from name
    patterns and the bold/italic style.

    Args:
        name: Name or id of the original font
        bold: Whether the text is bold
        italic: Whether the text is italic

    Returns:
        Standard PDF font name, e.g. "Times-BoldItalic".
    """
    name_lower = (name or "").lower()
    # "sans" is checked first so "Sans Serif" families stay sans-serif
    is_sans = "sans" in name_lower
    is_mono = any(pattern in name_lower for pattern in MONO_MARKERS)
    is_serif = not is_sans and any(pattern in name_lower for pattern in SERIF_MARKERS)

    if is_mono:
        if bold and italic:
            return "Courier-BoldOblique"
        if bold:
            return "Courier-Bold"
        if italic:
            return "Courier-Oblique"
        return "Courier"
    if is_serif:
        if bold and italic:
            return "Times-BoldItalic"
        if bold:
            return "Times-Bold"
        if italic:
            return "Times-Italic"
        return "Times-Roman"
    if bold and italic:
        return "Helvetica-BoldOblique"
    if bold:
        return "Helvetica-Bold"
    if italic:
        return "Helvetica-Oblique"
    return "Helvetica"


def _sanitize_font_id(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "-", name.lower())


def _file_loader(path: Path) -> FontLoader:
    async def load() -> bytes:
        return await asyncio.to_thread(path.read_bytes)

    return load


def _url_loader(url: str) -> FontLoader:
    async def load() -> bytes:
        try:
            import aiohttp
        except ImportError:
            raise ImportError(
                "aiohttp is required for remote fonts. "
                "Install with: pip install pdf-compositor[remote]"
            ) from None

        async with aiohttp.ClientSession() as session:
            async with session.get(url) as response:
                response.raise_for_status()
                return await response.read()

    return load


def _read_name_table(path: Path) -> tuple[str, str, str]:
    """Return (postscript name, full name, family) from a font's name table."""
    from fontTools.ttLib import TTFont  # type: ignore[import-untyped]

    font = TTFont(str(path), lazy=True)
    try:
        name_table = font["name"]
        postscript = name_table.getDebugName(6) or path.stem
        full_name = name_table.getDebugName(4) or postscript
        family = name_table.getDebugName(1) or full_name
        return postscript, full_name, family
    finally:
        font.close()


class FontCatalog:
    """Registry of the fonts available to one editing session.

    Starts with the PDF standard fonts; custom fonts are registered on top.
    """

    def __init__(self, include_standard: bool = True) -> None:
        self._fonts: dict[str, FontConfig] = {}
        if include_standard:
            for config in STANDARD_FONTS:
                self._fonts[config.id] = config

    def __contains__(self, font_id: object) -> bool:
        return font_id in self._fonts

    def __len__(self) -> int:
        return len(self._fonts)

    def list_fonts(self) -> list[FontConfig]:
        """All fonts, standard fonts first, in registration order."""
        return list(self._fonts.values())

    def get(self, font_id: str) -> Optional[FontConfig]:
        """Look up a font by id."""
        return self._fonts.get(font_id)

    def default_font(self) -> FontConfig:
        """The default font, or the first registered one.

        Raises:
            FontResolutionError: If the catalog is empty
        """
        config = self._fonts.get(DEFAULT_FONT_ID)
        if config is not None:
            return config
        for config in self._fonts.values():
            return config
        raise FontResolutionError("Font catalog is empty")

    def first_standard_font(self) -> Optional[FontConfig]:
        """The first standard font in the catalog, if any."""
        for config in self._fonts.values():
            if config.is_standard:
                return config
        return None

    def custom_fonts(self) -> list[FontConfig]:
        """Fonts that need embedding."""
        return [config for config in self._fonts.values() if not config.is_standard]

    def register(self, config: FontConfig) -> FontConfig:
        """Add a font.

        Raises:
            ValueError: If the id is already registered
        """
        if config.id in self._fonts:
            raise ValueError(f"Font id already registered: {config.id}")
        self._fonts[config.id] = config
        logger.debug("Registered font %s (%s)", config.id, config.name)
        return config

    def register_bytes(
        self, font_id: str, name: str, data: bytes, css_family: Optional[str] = None
    ) -> FontConfig:
        """Register a custom font held in memory."""
        return self.register(
            FontConfig(id=font_id, name=name, css_family=css_family or name, data=data)
        )

    def register_url(
        self, font_id: str, name: str, url: str, css_family: Optional[str] = None
    ) -> FontConfig:
        """Register a custom font fetched over HTTP on first use."""
        return self.register(
            FontConfig(
                id=font_id, name=name, css_family=css_family or name, loader=_url_loader(url)
            )
        )

    def register_file(self, path: Union[Path, str]) -> Optional[FontConfig]:
        """Register a local font file; its bytes are read on first use.

        Returns:
            The new config, or None if the font was skipped (unreadable,
            symbol/icon family, or already registered).
        """
        font_path = Path(path)
        try:
            postscript, full_name, family = _read_name_table(font_path)
        except Exception as exc:
            logger.debug("Skipping unreadable font %s: %s", font_path, exc)
            return None

        if any(marker in family for marker in SKIPPED_FAMILY_MARKERS):
            return None
        if any(config.name == full_name for config in self._fonts.values()):
            return None

        font_id = f"local-{_sanitize_font_id(postscript)}"
        if font_id in self._fonts:
            return None

        return self.register(
            FontConfig(
                id=font_id,
                name=full_name,
                css_family=family,
                loader=_file_loader(font_path),
            )
        )

    def register_directory(self, directory: Union[Path, str]) -> list[FontConfig]:
        """Discover and register every TrueType/OpenType font under a directory.

        Only metadata is read; font bytes are loaded lazily.

        Returns:
            Newly registered fonts.
        """
        root = Path(directory)
        if not root.is_dir():
            raise FileNotFoundError(f"Font directory not found: {root}")

        registered = []
        for path in sorted(root.rglob("*")):
            if path.suffix.lower() not in FONT_FILE_SUFFIXES or not path.is_file():
                continue
            config = self.register_file(path)
            if config is not None:
                registered.append(config)

        logger.info("Registered %d local fonts from %s", len(registered), root)
        return registered


class FontResourceManager:
    """Resolves font ids to binaries with a per-session cache.

    The cache is append-only: a font binary is loaded once and reused.
    Concurrent ``resolve`` calls for one id share a single in-flight load;
    distinct ids load independently.

    Example:
        manager = FontResourceManager(catalog)
        data = await manager.resolve("local-notosans-regular")
    """

    def __init__(self, catalog: Optional[FontCatalog] = None) -> None:
        self._catalog = catalog or FontCatalog()
        self._cache: dict[str, bytes] = {}
        self._inflight: dict[str, asyncio.Task[bytes]] = {}

    @property
    def catalog(self) -> FontCatalog:
        return self._catalog

    def _get_config(self, font_id: str) -> FontConfig:
        config = self._catalog.get(font_id)
        if config is None:
            raise FontResolutionError(f"Unknown font: {font_id}")
        return config

    def is_standard(self, font_id: str) -> bool:
        """Whether a font is a standard (non-embedded) font.

        Raises:
            FontResolutionError: If the id is unknown
        """
        return self._get_config(font_id).is_standard

    def is_cached(self, font_id: str) -> bool:
        return font_id in self._cache

    def get_cached(self, font_id: str) -> Optional[bytes]:
        return self._cache.get(font_id)

    async def resolve(self, font_id: str) -> bytes:
        """Return the binary of a custom font, loading it at most once.

        Raises:
            FontResolutionError: If the id is unknown, names a standard font,
                or the binary cannot be obtained
        """
        cached = self._cache.get(font_id)
        if cached is not None:
            return cached

        task = self._inflight.get(font_id)
        if task is None:
            config = self._get_config(font_id)
            if config.is_standard:
                raise FontResolutionError(
                    f"Standard font {font_id} has no binary to resolve"
                )
            task = asyncio.ensure_future(self._load(config))
            self._inflight[font_id] = task
            task.add_done_callback(lambda _t, key=font_id: self._inflight.pop(key, None))

        # shield: one cancelled waiter must not cancel the shared load
        return await asyncio.shield(task)

    async def _load(self, config: FontConfig) -> bytes:
        try:
            if config.data is not None:
                data = config.data
            elif config.loader is not None:
                logger.debug("Loading font lazily: %s", config.name)
                data = await config.loader()
            else:
                raise FontResolutionError(f"Font {config.id} has no data or loader")
        except FontResolutionError:
            raise
        except Exception as exc:
            raise FontResolutionError(
                f"Failed to load font {config.id}", cause=exc
            ) from exc

        if not data:
            raise FontResolutionError(f"Font {config.id} is empty")

        data = bytes(data)
        self._cache[config.id] = data
        return data

    async def resolve_many(self, font_ids: Iterable[str]) -> dict[str, Union[bytes, Exception]]:
        """Resolve several fonts concurrently.

        Returns:
            Mapping of font id to its binary or to the error raised for it.
        """
        ids = list(dict.fromkeys(font_ids))
        results = await asyncio.gather(
            *(self.resolve(font_id) for font_id in ids), return_exceptions=True
        )
        return dict(zip(ids, results))

    async def preload_all(self) -> None:
        """Load every custom font in the catalog concurrently.

        Failures are logged; the fonts stay unresolved.
        """
        results = await self.resolve_many(
            config.id for config in self._catalog.custom_fonts()
        )
        for font_id, result in results.items():
            if isinstance(result, Exception):
                logger.warning("Font preload failed for %s: %s", font_id, result)
