# SPDX-License-Identifier: Apache-2.0
"""Core PDF compositing modules."""

from .coordinates import DEFAULT_BASELINE_RATIO, RasterTransform
from .font_manager import (
    DEFAULT_FONT_ID,
    STANDARD_FONTS,
    FontCatalog,
    FontConfig,
    FontResourceManager,
    fallback_standard_font,
)
from .font_subsetter import FontSubsetter, SubsetConfig, SubsetResult
from .images import PreparedImage, prepare_image
from .models import (
    BBox,
    Color,
    DrawPathOperation,
    EditOperation,
    ImageOperation,
    MaskOperation,
    OperationSet,
    OperationType,
    TextEditOperation,
    TextStyle,
    dump_operations,
    load_operations,
    operation_from_dict,
)
from .path_translator import translate_path, translate_stroke_width
from .pdf_processor import PDFProcessor, compress_pdf_bytes
from .text_layout import TextLayoutEngine

__all__ = [
    "BBox",
    "Color",
    "DEFAULT_BASELINE_RATIO",
    "DEFAULT_FONT_ID",
    "DrawPathOperation",
    "EditOperation",
    "FontCatalog",
    "FontConfig",
    "FontResourceManager",
    "FontSubsetter",
    "ImageOperation",
    "MaskOperation",
    "OperationSet",
    "OperationType",
    "PDFProcessor",
    "PreparedImage",
    "RasterTransform",
    "STANDARD_FONTS",
    "SubsetConfig",
    "SubsetResult",
    "TextEditOperation",
    "TextLayoutEngine",
    "TextStyle",
    "compress_pdf_bytes",
    "dump_operations",
    "fallback_standard_font",
    "load_operations",
    "operation_from_dict",
    "prepare_image",
    "translate_path",
    "translate_stroke_width",
]
