# SPDX-License-Identifier: Apache-2.0
"""Export error definitions."""

from __future__ import annotations


class ExportError(Exception):
    """Base exception for export errors."""

    default_stage = "export"

    def __init__(
        self,
        message: str,
        stage: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage
        self.cause = cause

    def __str__(self) -> str:
        text = f"[{self.stage}] {self.message}"
        if self.cause is not None:
            text += f" (caused by {type(self.cause).__name__}: {self.cause})"
        return text


class SourceLoadError(ExportError):
    """Original document is unreadable or corrupt. Fatal."""

    default_stage = "load"


class FontResolutionError(ExportError):
    """Font id unknown or its binary could not be obtained."""

    default_stage = "font"


class SubsettingError(ExportError):
    """Font subsetting failed."""

    default_stage = "subset"


class UnsupportedImageFormatError(ExportError):
    """Image data is neither PNG nor JPEG, or cannot be decoded."""

    default_stage = "image"


class DrawPrimitiveError(ExportError):
    """A single operation could not be drawn."""

    default_stage = "draw"


class SaveError(ExportError):
    """Serializing the output document failed. Fatal."""

    default_stage = "save"
