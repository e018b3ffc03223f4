# SPDX-License-Identifier: Apache-2.0
"""Export pipeline implementation.

Bakes recorded edit operations into a copy of the source PDF:

1. load the source document
2. resolve and subset every custom font used by text operations
3. decode image payloads
4. draw each page's operations in recorded order
5. serialize (and optionally recompress) the result
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable

from pdf_compositor.core.coordinates import DEFAULT_BASELINE_RATIO, RasterTransform
from pdf_compositor.core.font_manager import (
    FontCatalog,
    FontResourceManager,
    fallback_standard_font,
)
from pdf_compositor.core.font_subsetter import (
    FontSubsetter,
    SubsetConfig,
    SubsetResult,
    has_truetype_outlines,
)
from pdf_compositor.core.images import PreparedImage, prepare_image
from pdf_compositor.core.models import (
    Color,
    DrawPathOperation,
    EditOperation,
    ImageOperation,
    MaskOperation,
    OperationType,
    TextEditOperation,
    TextStyle,
    collect_font_chars,
    group_operations_by_page,
)
from pdf_compositor.core.path_translator import path_to_svg, translate_path, translate_stroke_width
from pdf_compositor.core.pdf_processor import PDFProcessor, compress_pdf_bytes
from pdf_compositor.core.text_layout import TextLayoutEngine
from pdf_compositor.errors import (
    DrawPrimitiveError,
    ExportError,
    SaveError,
    SourceLoadError,
    UnsupportedImageFormatError,
)
from pdf_compositor.pipeline.progress import ProgressCallback

logger = logging.getLogger(__name__)

IMAGE_ERROR_POLICIES = frozenset({"skip", "abort"})


@dataclass
class ExportConfig:
    """Export pipeline configuration."""

    # Distance from text box top to baseline, as a fraction of font size
    baseline_ratio: float = DEFAULT_BASELINE_RATIO
    # Use the embedded font's ascent instead of baseline_ratio
    use_font_metrics: bool = False
    line_height_factor: float = 1.2

    mask_color: Color = field(default_factory=lambda: Color(255, 255, 255))

    # "skip": drop the operation with a warning; "abort": fail the export
    image_error_policy: str = "skip"

    compress: bool = False

    subset_fonts: bool = True
    subset: SubsetConfig = field(default_factory=SubsetConfig)

    def __post_init__(self) -> None:
        if self.image_error_policy not in IMAGE_ERROR_POLICIES:
            raise ValueError(
                f"image_error_policy must be one of {sorted(IMAGE_ERROR_POLICIES)}, "
                f"got {self.image_error_policy!r}"
            )


@dataclass
class ExportWarning:
    """A recoverable problem met during export."""

    stage: str
    message: str
    operation_id: str | None = None
    font_id: str | None = None

    def __str__(self) -> str:
        subject = self.operation_id or self.font_id
        prefix = f"[{self.stage}] {subject}: " if subject else f"[{self.stage}] "
        return prefix + self.message


@dataclass
class ExportResult:
    """Export pipeline result."""

    pdf_bytes: bytes
    success: bool = True
    warnings: list[ExportWarning] = field(default_factory=list)
    stats: dict[str, Any] | None = None
    error: ExportError | None = None


@dataclass
class _ExportContext:
    """Mutable state of one export run."""

    processor: PDFProcessor
    warnings: list[ExportWarning] = field(default_factory=list)
    font_handles: dict[str, Any] = field(default_factory=dict)  # custom font id -> handle
    failed_fonts: set[str] = field(default_factory=set)
    images: dict[str, PreparedImage] = field(default_factory=dict)
    applied: int = 0
    skipped: int = 0
    subsetted_fonts: int = 0


OperationHandler = Callable[[_ExportContext, int, RasterTransform, Any], None]


def _describe(error: BaseException) -> str:
    """Error text without the stage prefix; warnings carry the stage separately."""
    if isinstance(error, ExportError):
        if error.cause is not None:
            return f"{error.message}: {error.cause}"
        return error.message
    return str(error)


class ExportPipeline:
    """Applies edit operations to a PDF.

    One pipeline holds one font session: fonts resolved and subset by an
    export are reused by later exports through the same pipeline.

    Example:
        pipeline = ExportPipeline(catalog)
        result = await pipeline.export(pdf_bytes, operations, raster_page_height=1000)
    """

    def __init__(
        self,
        catalog: FontCatalog | None = None,
        config: ExportConfig | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        """Initialize ExportPipeline."""
        self._config = config or ExportConfig()
        self._fonts = FontResourceManager(catalog or FontCatalog())
        self._subsetter = FontSubsetter(self._config.subset)
        # (font id, used chars) -> subset outcome, shared by exports of this session
        self._subset_cache: dict[tuple[str, str], SubsetResult] = {}
        self._layout = TextLayoutEngine(self._config.line_height_factor)
        self._progress_callback = progress_callback
        self._handlers: dict[OperationType, OperationHandler] = {
            OperationType.ADD_MASK: self._draw_mask,
            OperationType.OVERLAY_TEXT: self._draw_text,
            OperationType.ADD_TEXT: self._draw_text,
            OperationType.ADD_IMAGE: self._draw_image,
            OperationType.DRAW_PATH: self._draw_path,
        }

    @property
    def config(self) -> ExportConfig:
        return self._config

    @property
    def font_manager(self) -> FontResourceManager:
        return self._fonts

    async def export(
        self,
        pdf_source: Path | str | bytes,
        operations: Iterable[EditOperation],
        raster_page_height: float,
        output_path: Path | None = None,
    ) -> ExportResult:
        """Apply operations to a PDF and return the new document.

        Args:
            pdf_source: Source PDF path or bytes (never modified)
            operations: Operations in recorded order
            raster_page_height: Height in pixels of the page preview the
                operations were recorded on
            output_path: Optional file to write the result to

        Raises:
            ValueError: If raster_page_height is not positive
            ExportError: On fatal failures (source load, save, image abort)
        """
        if raster_page_height <= 0:
            raise ValueError(f"raster_page_height must be positive, got {raster_page_height}")

        ops = list(operations)
        processor = self._stage_load(pdf_source)
        with processor:
            ctx = _ExportContext(processor=processor)
            font_data = await self._stage_fonts(ops, ctx)
            await self._stage_images(ops, ctx)
            self._stage_embed_fonts(font_data, ctx)
            pages_modified = self._stage_compose(ops, raster_page_height, ctx)
            pdf_bytes = self._stage_save(processor)

        if output_path is not None:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(pdf_bytes)

        stats = {
            "operations": len(ops),
            "applied_operations": ctx.applied,
            "skipped_operations": ctx.skipped,
            "pages_modified": pages_modified,
            "embedded_fonts": len(ctx.font_handles),
            "subsetted_fonts": ctx.subsetted_fonts,
            "fallback_fonts": len(ctx.failed_fonts),
            "warnings": len(ctx.warnings),
        }
        return ExportResult(pdf_bytes=pdf_bytes, warnings=ctx.warnings, stats=stats)

    def _stage_load(self, pdf_source: Path | str | bytes) -> PDFProcessor:
        try:
            processor = PDFProcessor(pdf_source)
        except (ValueError, OSError) as exc:
            raise SourceLoadError("Source PDF could not be loaded", cause=exc) from exc

        self._notify("load", 1, 1)
        return processor

    async def _stage_fonts(
        self, operations: list[EditOperation], ctx: _ExportContext
    ) -> dict[str, bytes]:
        """Resolve and subset every custom font used by text operations.

        Completes before anything is drawn.
        """
        chars_by_font = collect_font_chars(operations)
        catalog = self._fonts.catalog

        custom_ids = []
        for font_id in chars_by_font:
            config = catalog.get(font_id)
            if config is None:
                self._warn(
                    ctx, "font", "Unknown font, using default standard font", font_id=font_id
                )
                ctx.failed_fonts.add(font_id)
            elif not config.is_standard:
                custom_ids.append(font_id)

        resolved = await self._fonts.resolve_many(custom_ids)
        font_data: dict[str, bytes] = {}
        for font_id, result in resolved.items():
            if isinstance(result, BaseException):
                self._warn(
                    ctx, "font", f"{_describe(result)}, using fallback font", font_id=font_id
                )
                ctx.failed_fonts.add(font_id)
            else:
                font_data[font_id] = result

        if self._config.subset_fonts and font_data:
            ids = list(font_data)
            pending = [
                font_id
                for font_id in ids
                if (font_id, chars_by_font[font_id]) not in self._subset_cache
            ]
            results = await asyncio.gather(
                *(
                    asyncio.to_thread(
                        self._subset_font, font_id, font_data[font_id], chars_by_font[font_id]
                    )
                    for font_id in pending
                )
            )
            for font_id, subset_result in zip(pending, results):
                self._subset_cache[(font_id, chars_by_font[font_id])] = subset_result

            for font_id in ids:
                subset_result = self._subset_cache[(font_id, chars_by_font[font_id])]
                if subset_result.error is not None:
                    self._warn(
                        ctx,
                        "subset",
                        f"{_describe(subset_result.error)}, embedding full font",
                        font_id=font_id,
                    )
                elif subset_result.subsetted:
                    ctx.subsetted_fonts += 1
                font_data[font_id] = subset_result.data

        self._notify("fonts", len(font_data), len(chars_by_font))
        return font_data

    def _subset_font(self, font_id: str, data: bytes, chars: str) -> SubsetResult:
        if not has_truetype_outlines(data, self._config.subset.font_number):
            logger.warning(
                "Font %s has no TrueType outlines; it may not display in every viewer", font_id
            )
        return self._subsetter.subset_or_full(data, chars)

    async def _stage_images(self, operations: list[EditOperation], ctx: _ExportContext) -> None:
        image_ops = [op for op in operations if op.type == OperationType.ADD_IMAGE]
        if not image_ops:
            return

        results = await asyncio.gather(
            *(
                asyncio.to_thread(prepare_image, op.image_data)  # type: ignore[union-attr]
                for op in image_ops
            ),
            return_exceptions=True,
        )
        for op, result in zip(image_ops, results):
            if isinstance(result, UnsupportedImageFormatError):
                if self._config.image_error_policy == "abort":
                    raise result
                self._warn(
                    ctx, "image", f"{_describe(result)}, operation skipped", operation_id=op.id
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                ctx.images[op.id] = result

        self._notify("images", len(ctx.images), len(image_ops))

    def _stage_embed_fonts(self, font_data: dict[str, bytes], ctx: _ExportContext) -> None:
        for font_id, data in font_data.items():
            handle = ctx.processor.load_font(data, font_id)
            if handle is None:
                self._warn(
                    ctx, "font", "PDFium rejected the font program, using fallback font",
                    font_id=font_id,
                )
                ctx.failed_fonts.add(font_id)
                continue
            ctx.font_handles[font_id] = handle

    def _stage_compose(
        self,
        operations: list[EditOperation],
        raster_page_height: float,
        ctx: _ExportContext,
    ) -> int:
        by_page = group_operations_by_page(operations)
        page_count = ctx.processor.page_count
        pages_modified = 0

        for step, page_number in enumerate(sorted(by_page), start=1):
            page_ops = by_page[page_number]
            if page_number < 1 or page_number > page_count:
                for op in page_ops:
                    self._warn(
                        ctx,
                        "draw",
                        f"Page {page_number} does not exist ({page_count} pages), "
                        "operation skipped",
                        operation_id=op.id,
                    )
                    ctx.skipped += 1
                continue

            page_index = page_number - 1
            _, pdf_height = ctx.processor.page_size(page_index)
            transform = RasterTransform(pdf_height, raster_page_height)

            applied_before = ctx.applied
            for op in page_ops:
                self._apply_operation(ctx, page_index, transform, op)
            if ctx.applied > applied_before:
                pages_modified += 1

            self._notify("compose", step, len(by_page), f"page {page_number}")

        return pages_modified

    def _apply_operation(
        self,
        ctx: _ExportContext,
        page_index: int,
        transform: RasterTransform,
        op: EditOperation,
    ) -> None:
        handler = self._handlers[op.type]
        try:
            handler(ctx, page_index, transform, op)
        except DrawPrimitiveError as exc:
            error = exc
        except (RuntimeError, ValueError) as exc:
            error = DrawPrimitiveError(f"Cannot draw {op.type.value}", cause=exc)
        else:
            return

        logger.warning("Operation %s not applied: %s", op.id, error)
        ctx.warnings.append(ExportWarning(error.stage, _describe(error), operation_id=op.id))
        ctx.skipped += 1

    def _draw_mask(
        self,
        ctx: _ExportContext,
        page_index: int,
        transform: RasterTransform,
        op: MaskOperation,
    ) -> None:
        bbox = transform.to_pdf_rect(op.x, op.y, op.width, op.height)
        ctx.processor.insert_rect(page_index, bbox, self._config.mask_color)
        ctx.applied += 1

    def _draw_text(
        self,
        ctx: _ExportContext,
        page_index: int,
        transform: RasterTransform,
        op: TextEditOperation,
    ) -> None:
        if not op.text:
            logger.debug("Skipping empty text operation %s", op.id)
            ctx.skipped += 1
            return

        font_handle = self._font_handle(ctx, op.style)
        pdf_font_size = transform.to_pdf_length(op.style.font_size)
        ascent = None
        if self._config.use_font_metrics:
            ascent = self._layout.get_ascent(font_handle, pdf_font_size)

        x, y = transform.text_baseline(
            op.x,
            op.y,
            op.style.font_size,
            baseline_ratio=self._config.baseline_ratio,
            ascent=ascent,
        )
        lines = self._layout.layout_lines(
            op.text,
            font_handle,
            pdf_font_size,
            x,
            y,
            box_width=transform.to_pdf_length(op.width),
            alignment=op.style.align,
        )

        color = Color.parse(op.style.color)
        for line in lines:
            if not line.text:
                continue
            inserted = ctx.processor.insert_text(
                page_index, line.text, line.x, line.y, font_handle, pdf_font_size, color
            )
            if not inserted:
                raise DrawPrimitiveError(f"Failed to insert text {line.text!r}")
        ctx.applied += 1

    def _font_handle(self, ctx: _ExportContext, style: TextStyle) -> Any:
        """Pick the font handle for a text style, falling back to a standard font."""
        handle = ctx.font_handles.get(style.font_id)
        if handle is not None:
            return handle

        catalog = self._fonts.catalog
        config = catalog.get(style.font_id)
        if config is not None and config.is_standard:
            name = config.standard_font or "Helvetica"
        elif config is not None:
            # Custom font that failed to resolve or embed
            name = fallback_standard_font(config.name, style.is_bold, style.is_italic)
        else:
            default = catalog.first_standard_font()
            name = default.standard_font if default and default.standard_font else "Helvetica"

        handle = ctx.processor.load_standard_font(name)
        if handle is None:
            raise DrawPrimitiveError(f"Cannot load standard font {name}")
        return handle

    def _draw_image(
        self,
        ctx: _ExportContext,
        page_index: int,
        transform: RasterTransform,
        op: ImageOperation,
    ) -> None:
        image = ctx.images.get(op.id)
        if image is None:
            # Rejected while decoding; already reported
            ctx.skipped += 1
            return

        bbox = transform.to_pdf_rect(op.x, op.y, op.width, op.height)
        ctx.processor.insert_image(page_index, image, bbox, op.rotation)
        ctx.applied += 1

    def _draw_path(
        self,
        ctx: _ExportContext,
        page_index: int,
        transform: RasterTransform,
        op: DrawPathOperation,
    ) -> None:
        if not op.path:
            logger.debug("Skipping empty path operation %s", op.id)
            ctx.skipped += 1
            return

        commands = translate_path(op.path, transform.scale)
        width = translate_stroke_width(op.stroke_width, transform.scale)
        logger.debug("Drawing path %s: %s", op.id, path_to_svg(commands))
        ctx.processor.insert_path(page_index, commands, Color.parse(op.color), width)
        ctx.applied += 1

    def _stage_save(self, processor: PDFProcessor) -> bytes:
        try:
            pdf_bytes = processor.to_bytes()
            if self._config.compress:
                pdf_bytes = compress_pdf_bytes(pdf_bytes)
        except Exception as exc:
            raise SaveError("Failed to serialize PDF", cause=exc) from exc

        self._notify("save", 1, 1)
        return pdf_bytes

    def _warn(
        self,
        ctx: _ExportContext,
        stage: str,
        message: str,
        operation_id: str | None = None,
        font_id: str | None = None,
    ) -> None:
        warning = ExportWarning(stage, message, operation_id=operation_id, font_id=font_id)
        logger.warning("%s", warning)
        ctx.warnings.append(warning)

    def _notify(self, stage: str, current: int, total: int, message: str = "") -> None:
        if self._progress_callback is None:
            return
        self._progress_callback(stage, current, total, message)


async def export_edited_pdf(
    pdf_source: Path | str | bytes,
    operations: Iterable[EditOperation],
    raster_page_height: float,
    catalog: FontCatalog | None = None,
    config: ExportConfig | None = None,
    output_path: Path | None = None,
    progress_callback: ProgressCallback | None = None,
) -> ExportResult:
    """Export an edited PDF without raising.

    Returns:
        ExportResult; on failure ``success`` is False, ``pdf_bytes`` is
        empty and ``error`` holds the cause. Unexpected exceptions are
        wrapped in a plain ExportError.
    """
    pipeline = ExportPipeline(catalog, config, progress_callback)
    try:
        return await pipeline.export(pdf_source, operations, raster_page_height, output_path)
    except ExportError as exc:
        logger.error("Export failed: %s", exc)
        return ExportResult(pdf_bytes=b"", success=False, error=exc)
    except Exception as exc:
        logger.exception("Export failed unexpectedly")
        error = ExportError("Unexpected export failure", cause=exc)
        return ExportResult(pdf_bytes=b"", success=False, error=error)
