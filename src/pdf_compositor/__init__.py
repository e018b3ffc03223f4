# SPDX-License-Identifier: Apache-2.0
"""PDF Compositor - bakes preview edit operations into vector PDFs."""

from pdf_compositor.core.font_manager import FontCatalog, FontConfig
from pdf_compositor.core.models import (
    DrawPathOperation,
    ImageOperation,
    MaskOperation,
    OperationSet,
    OperationType,
    TextEditOperation,
    TextStyle,
)
from pdf_compositor.errors import ExportError
from pdf_compositor.pipeline import (
    ExportConfig,
    ExportPipeline,
    ExportResult,
    ExportWarning,
    export_edited_pdf,
)

__version__ = "0.1.0"

__all__ = [
    "DrawPathOperation",
    "ExportConfig",
    "ExportError",
    "ExportPipeline",
    "ExportResult",
    "ExportWarning",
    "FontCatalog",
    "FontConfig",
    "ImageOperation",
    "MaskOperation",
    "OperationSet",
    "OperationType",
    "TextEditOperation",
    "TextStyle",
    "export_edited_pdf",
]
