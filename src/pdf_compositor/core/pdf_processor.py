# SPDX-License-Identifier: Apache-2.0
"""PDF processing module using pypdfium2.

This module loads a source PDF, draws new page objects (rectangles, text,
images, stroked paths) on top of the existing content, and serializes the
result. Existing content streams are never parsed or rewritten.
"""

from __future__ import annotations

import ctypes
import logging
from io import BytesIO
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import pikepdf  # type: ignore[import-untyped]
import pypdfium2 as pdfium  # type: ignore[import-untyped]

from .helpers import to_byte_array, to_widestring
from .images import PreparedImage
from .models import BBox, Color

logger = logging.getLogger(__name__)

# PDFium page object type constants
FPDF_PAGEOBJ_TEXT = 1
FPDF_PAGEOBJ_PATH = 2
FPDF_PAGEOBJ_IMAGE = 3

# PDFium path fill modes
FPDF_FILLMODE_NONE = 0
FPDF_FILLMODE_WINDING = 2

# PDFium line cap / join styles
FPDF_LINECAP_ROUND = 1
FPDF_LINEJOIN_ROUND = 1

# PDFium font types
FPDF_FONT_TRUETYPE = 2


def _quad_to_cubic(
    start: tuple[float, float], control: tuple[float, float], end: tuple[float, float]
) -> tuple[float, float, float, float, float, float]:
    """Raise a quadratic Bezier segment to the equivalent cubic one."""
    c1x = start[0] + 2.0 / 3.0 * (control[0] - start[0])
    c1y = start[1] + 2.0 / 3.0 * (control[1] - start[1])
    c2x = end[0] + 2.0 / 3.0 * (control[0] - end[0])
    c2y = end[1] + 2.0 / 3.0 * (control[1] - end[1])
    return c1x, c1y, c2x, c2y, end[0], end[1]


def compress_pdf_bytes(pdf_bytes: bytes) -> bytes:
    """Recompress a PDF with object streams and compressed content streams.

    Args:
        pdf_bytes: Serialized PDF.

    Returns:
        Rewritten PDF bytes.
    """
    pdf = pikepdf.open(BytesIO(pdf_bytes))
    try:
        output = BytesIO()
        pdf.save(
            output,
            compress_streams=True,
            object_stream_mode=pikepdf.ObjectStreamMode.generate,
        )
        return output.getvalue()
    finally:
        pdf.close()


class PDFProcessor:
    """PDF processor using pypdfium2.

    Drawing is additive: every inserted object goes on top of the page's
    existing content, in call order. Content streams of modified pages are
    regenerated once, before serialization.

    Example:
        >>> processor = PDFProcessor(pdf_bytes)
        >>> processor.insert_rect(0, BBox(72, 700, 200, 720), Color(255, 255, 255))
        >>> font = processor.load_standard_font("Helvetica")
        >>> processor.insert_text(0, "New text", 72, 705, font, 12.0)
        >>> data = processor.to_bytes()
    """

    def __init__(self, pdf_source: Union[Path, str, bytes]) -> None:
        """Initialize the PDF processor.

        Args:
            pdf_source: Path to PDF file or PDF bytes

        Raises:
            TypeError: If pdf_source is not Path, str, or bytes
            FileNotFoundError: If the file path doesn't exist
            ValueError: If the PDF cannot be loaded
        """
        self._source_name: str
        self._pdf: Optional[pdfium.PdfDocument] = None
        self._loaded_fonts: dict[str, Any] = {}  # font key -> font_handle
        self._loaded_font_buffers: dict[str, ctypes.Array[Any]] = {}  # keep buffers alive
        self._pages: dict[int, pdfium.PdfPage] = {}
        self._dirty_pages: set[int] = set()

        if isinstance(pdf_source, (bytes, bytearray)):
            source: Any = bytes(pdf_source)
            self._source_name = "bytes"
        elif isinstance(pdf_source, (str, Path)):
            path = Path(pdf_source)
            if not path.exists():
                raise FileNotFoundError(f"PDF file not found: {path}")
            source = str(path)
            self._source_name = path.name
        else:
            raise TypeError(
                f"pdf_source must be Path, str, or bytes, got {type(pdf_source).__name__}"
            )

        try:
            self._pdf = pdfium.PdfDocument(source)
        except pdfium.PdfiumError as exc:
            raise ValueError(f"Cannot load PDF ({self._source_name}): {exc}") from exc

    def __enter__(self) -> PDFProcessor:
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Any,
    ) -> None:
        """Context manager exit."""
        self.close()

    def close(self) -> None:
        """Close the PDF document and release resources."""
        self._pages.clear()
        self._dirty_pages.clear()
        if self._pdf is not None:
            self._pdf.close()
            self._pdf = None
        # Font buffers are released only after the document that reads them
        self._loaded_fonts.clear()
        self._loaded_font_buffers.clear()

    @property
    def page_count(self) -> int:
        """Get the number of pages in the document."""
        return len(self._ensure_open())

    def _ensure_open(self) -> pdfium.PdfDocument:
        """Ensure PDF document is open and return it."""
        if self._pdf is None:
            raise RuntimeError("PDF document is not open")
        return self._pdf

    def _get_page(self, page_index: int) -> pdfium.PdfPage:
        """Get a page (0-indexed), reusing one page object per index.

        Objects inserted through a page object only reach the content
        stream when that same object regenerates its content.

        Raises:
            IndexError: If page_index is out of range
        """
        pdf = self._ensure_open()
        if page_index < 0 or page_index >= len(pdf):
            raise IndexError(f"Page number {page_index} out of range")
        page = self._pages.get(page_index)
        if page is None:
            page = pdf[page_index]
            self._pages[page_index] = page
        return page

    def page_size(self, page_index: int) -> tuple[float, float]:
        """Page (width, height) in PDF units."""
        page = self._get_page(page_index)
        return page.get_width(), page.get_height()

    def load_font(self, font_data: bytes, key: str) -> Optional[Any]:
        """Embed a TrueType font program.

        Always loads as CID font so any Unicode text can be set.

        Args:
            font_data: Font binary (typically a subset)
            key: Cache key, e.g. the font id

        Returns:
            Font handle or None if PDFium rejected the data
        """
        if key in self._loaded_fonts:
            return self._loaded_fonts[key]
        if not font_data:
            return None

        font_arr = to_byte_array(font_data)
        pdf = self._ensure_open()
        font_handle = pdfium.raw.FPDFText_LoadFont(
            pdf.raw,
            font_arr,
            ctypes.c_uint(len(font_data)),
            ctypes.c_int(FPDF_FONT_TRUETYPE),
            ctypes.c_int(1),  # CID mode
        )

        if font_handle:
            # Keep the buffer alive for the lifetime of this processor
            self._loaded_font_buffers[key] = font_arr
            self._loaded_fonts[key] = font_handle
            return font_handle
        return None

    def load_standard_font(self, font_name: str) -> Optional[Any]:
        """Load a standard PDF font.

        Args:
            font_name: Standard font name (e.g., "Helvetica", "Times-Roman")

        Returns:
            Font handle or None if loading failed
        """
        key = f"standard:{font_name}"
        if key in self._loaded_fonts:
            return self._loaded_fonts[key]

        pdf = self._ensure_open()
        font_handle = pdfium.raw.FPDFText_LoadStandardFont(
            pdf.raw, font_name.encode("utf-8")
        )

        if font_handle:
            self._loaded_fonts[key] = font_handle
            return font_handle
        return None

    def _insert_raw(self, page_index: int, page_obj: Any) -> None:
        page = self._get_page(page_index)
        pdfium.raw.FPDFPage_InsertObject(page.raw, page_obj)
        self._dirty_pages.add(page_index)

    def insert_rect(self, page_index: int, bbox: BBox, color: Color) -> None:
        """Insert a filled rectangle without stroke.

        Args:
            page_index: Page number (0-indexed)
            bbox: Rectangle in PDF space
            color: Fill color

        Raises:
            IndexError: If page_index is out of range
            RuntimeError: If PDFium fails to create the object
        """
        self._get_page(page_index)
        rect = pdfium.raw.FPDFPageObj_CreateNewRect(
            ctypes.c_float(bbox.x0),
            ctypes.c_float(bbox.y0),
            ctypes.c_float(bbox.width),
            ctypes.c_float(bbox.height),
        )
        if not rect:
            raise RuntimeError("Failed to create rectangle object")

        pdfium.raw.FPDFPageObj_SetFillColor(rect, color.r, color.g, color.b, color.a)
        pdfium.raw.FPDFPath_SetDrawMode(rect, FPDF_FILLMODE_WINDING, ctypes.c_int(0))
        self._insert_raw(page_index, rect)

    def insert_text(
        self,
        page_index: int,
        text: str,
        x: float,
        y: float,
        font_handle: Any,
        font_size: float,
        color: Optional[Color] = None,
    ) -> bool:
        """Insert a single line of text with its baseline origin at (x, y).

        Args:
            page_index: Page number (0-indexed)
            text: Text content (one line)
            x: Baseline origin X in PDF space
            y: Baseline origin Y in PDF space
            font_handle: Font handle from load_font / load_standard_font
            font_size: Font size in points
            color: Text color (default: black)

        Returns:
            True if the text object was inserted

        Raises:
            IndexError: If page_index is out of range
        """
        pdf = self._ensure_open()
        self._get_page(page_index)

        text_obj = pdfium.raw.FPDFPageObj_CreateTextObj(
            pdf.raw, font_handle, ctypes.c_float(font_size)
        )
        if not text_obj:
            return False

        if not pdfium.raw.FPDFText_SetText(text_obj, to_widestring(text)):
            pdfium.raw.FPDFPageObj_Destroy(text_obj)
            return False

        fill = color or Color()
        pdfium.raw.FPDFPageObj_SetFillColor(text_obj, fill.r, fill.g, fill.b, fill.a)

        pdfium.raw.FPDFPageObj_Transform(
            text_obj,
            ctypes.c_double(1.0),
            ctypes.c_double(0.0),
            ctypes.c_double(0.0),
            ctypes.c_double(1.0),
            ctypes.c_double(x),
            ctypes.c_double(y),
        )
        self._insert_raw(page_index, text_obj)
        return True

    def insert_image(
        self,
        page_index: int,
        image: PreparedImage,
        bbox: BBox,
        rotation: float = 0.0,
    ) -> None:
        """Insert an image stretched over ``bbox``.

        Args:
            page_index: Page number (0-indexed)
            image: Decoded image (JPEG data is embedded as-is)
            bbox: Target rectangle in PDF space
            rotation: Degrees, counter-clockwise, about (bbox.x0, bbox.y0)

        Raises:
            IndexError: If page_index is out of range
            ValueError: If a PNG image has no decoded bitmap
        """
        pdf = self._ensure_open()
        page = self._get_page(page_index)

        image_obj = pdfium.PdfImage.new(pdf)
        if image.format == "jpeg":
            image_obj.load_jpeg(BytesIO(image.data), pages=[page], inline=True)
        else:
            if image.bitmap_source is None:
                raise ValueError("PNG image has no decoded bitmap")
            bitmap = pdfium.PdfBitmap.from_pil(image.bitmap_source)
            image_obj.set_bitmap(bitmap, pages=[page])

        # Image space is the unit square: scale, rotate about the origin, move
        matrix = pdfium.PdfMatrix().scale(bbox.width, bbox.height)
        if rotation:
            matrix = matrix.rotate(rotation, ccw=True)
        matrix = matrix.translate(bbox.x0, bbox.y0)
        image_obj.set_matrix(matrix)

        page.insert_obj(image_obj)
        self._dirty_pages.add(page_index)

    def insert_path(
        self,
        page_index: int,
        commands: Sequence[Sequence[Any]],
        color: Color,
        stroke_width: float,
    ) -> None:
        """Insert a stroked path given in top-left anchored coordinates.

        Coordinates are PDF units measured from the page's top-left corner
        with y downward; the path object's matrix places that origin on the
        page's top edge. Caps and joins are round, there is no fill.

        Args:
            page_index: Page number (0-indexed)
            commands: ``M``/``L``/``Q``/``C``/``Z`` commands, already scaled
            color: Stroke color
            stroke_width: Stroke width in PDF units

        Raises:
            IndexError: If page_index is out of range
            ValueError: If the path does not start with a move command
            RuntimeError: If PDFium fails to build the path
        """
        _, page_height = self.page_size(page_index)
        if not commands or commands[0][0] != "M":
            raise ValueError("Path must start with a move command")

        start = (float(commands[0][1]), float(commands[0][2]))
        path = pdfium.raw.FPDFPageObj_CreateNewPath(
            ctypes.c_float(start[0]), ctypes.c_float(start[1])
        )
        if not path:
            raise RuntimeError("Failed to create path object")

        try:
            current = start
            subpath_start = start
            for command in commands[1:]:
                opcode = command[0]
                args = [float(value) for value in command[1:]]
                if opcode == "M":
                    ok = pdfium.raw.FPDFPath_MoveTo(path, *map(ctypes.c_float, args))
                    current = subpath_start = (args[0], args[1])
                elif opcode == "L":
                    ok = pdfium.raw.FPDFPath_LineTo(path, *map(ctypes.c_float, args))
                    current = (args[0], args[1])
                elif opcode == "Q":
                    cubic = _quad_to_cubic(current, (args[0], args[1]), (args[2], args[3]))
                    ok = pdfium.raw.FPDFPath_BezierTo(path, *map(ctypes.c_float, cubic))
                    current = (args[2], args[3])
                elif opcode == "C":
                    ok = pdfium.raw.FPDFPath_BezierTo(path, *map(ctypes.c_float, args))
                    current = (args[4], args[5])
                elif opcode == "Z":
                    ok = pdfium.raw.FPDFPath_Close(path)
                    current = subpath_start
                else:
                    raise ValueError(f"Unknown path opcode {opcode!r}")
                if not ok:
                    raise RuntimeError(f"PDFium rejected path command {opcode!r}")

            pdfium.raw.FPDFPageObj_SetStrokeColor(path, color.r, color.g, color.b, color.a)
            pdfium.raw.FPDFPageObj_SetStrokeWidth(path, ctypes.c_float(stroke_width))
            pdfium.raw.FPDFPageObj_SetLineCap(path, FPDF_LINECAP_ROUND)
            pdfium.raw.FPDFPageObj_SetLineJoin(path, FPDF_LINEJOIN_ROUND)
            pdfium.raw.FPDFPath_SetDrawMode(path, FPDF_FILLMODE_NONE, ctypes.c_int(1))

            # Mirror y and move the origin to the top edge
            pdfium.raw.FPDFPageObj_Transform(
                path,
                ctypes.c_double(1.0),
                ctypes.c_double(0.0),
                ctypes.c_double(0.0),
                ctypes.c_double(-1.0),
                ctypes.c_double(0.0),
                ctypes.c_double(page_height),
            )
        except Exception:
            pdfium.raw.FPDFPageObj_Destroy(path)
            raise

        self._insert_raw(page_index, path)

    def gen_content(self) -> None:
        """Regenerate content streams of every modified page."""
        for page_index in sorted(self._dirty_pages):
            self._pages[page_index].gen_content()
        self._dirty_pages.clear()

    def save(self, output_path: Union[Path, str]) -> None:
        """Save the PDF to a file.

        Args:
            output_path: Output file path
        """
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.to_bytes())

    def to_bytes(self) -> bytes:
        """Export the PDF as a new, independent byte buffer."""
        self.gen_content()
        buffer = BytesIO()
        pdf = self._ensure_open()
        pdf.save(buffer)
        return buffer.getvalue()
