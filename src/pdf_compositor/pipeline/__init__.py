# SPDX-License-Identifier: Apache-2.0
"""Export pipeline package."""

from pdf_compositor.errors import (
    DrawPrimitiveError,
    ExportError,
    FontResolutionError,
    SaveError,
    SourceLoadError,
    SubsettingError,
    UnsupportedImageFormatError,
)

from .export_pipeline import (
    ExportConfig,
    ExportPipeline,
    ExportResult,
    ExportWarning,
    export_edited_pdf,
)
from .progress import ProgressCallback

__all__ = [
    "DrawPrimitiveError",
    "ExportConfig",
    "ExportError",
    "ExportPipeline",
    "ExportResult",
    "ExportWarning",
    "FontResolutionError",
    "ProgressCallback",
    "SaveError",
    "SourceLoadError",
    "SubsettingError",
    "UnsupportedImageFormatError",
    "export_edited_pdf",
]
