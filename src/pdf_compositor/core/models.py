# SPDX-License-Identifier: Apache-2.0
"""Data models for edit operations.

Edit operations are immutable snapshots produced by the editing surface.
All positions and sizes are expressed in raster (preview pixel) space:
origin at the top-left, y increasing downward.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Iterator, Optional, Sequence, Union

from .images import to_data_url

SCHEMA_VERSION = "1.0.0"


class OperationType(str, Enum):
    """Operation tags (values match the editor's wire names)."""

    ADD_MASK = "ADD_MASK"
    OVERLAY_TEXT = "OVERLAY_TEXT"
    ADD_TEXT = "ADD_TEXT"
    ADD_IMAGE = "ADD_IMAGE"
    DRAW_PATH = "DRAW_PATH"


TEXT_OPERATION_TYPES: frozenset[OperationType] = frozenset(
    {OperationType.OVERLAY_TEXT, OperationType.ADD_TEXT}
)


@dataclass
class BBox:
    """Bounding box in PDF coordinate system (origin at bottom-left).

    Attributes:
        x0: Left X coordinate
        y0: Bottom Y coordinate
        x1: Right X coordinate
        y1: Top Y coordinate
    """

    x0: float
    y0: float
    x1: float
    y1: float

    @property
    def width(self) -> float:
        """Width of the bounding box."""
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        """Height of the bounding box."""
        return self.y1 - self.y0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"x0": self.x0, "y0": self.y0, "x1": self.x1, "y1": self.y1}


_RGB_PATTERN = re.compile(r"^rgba?\((.*)\)$", re.IGNORECASE)


@dataclass(frozen=True)
class Color:
    """RGBA color value.

    Attributes:
        r: Red component (0-255)
        g: Green component (0-255)
        b: Blue component (0-255)
        a: Alpha component (0-255)
    """

    r: int = 0
    g: int = 0
    b: int = 0
    a: int = 255

    @classmethod
    def parse(cls, value: Optional[str]) -> Color:
        """Parse a CSS-like color string.

        Supports ``#RRGGBB``, ``#RGB``, ``rgb(r, g, b)`` and
        ``rgba(r, g, b, a)`` (alpha in 0-1). Anything else is black.

        Args:
            value: Color string from the editor.

        Returns:
            Parsed color.
        """
        if not value:
            return cls()
        text = value.strip()

        if text.startswith("#"):
            hex_digits = text[1:]
            if len(hex_digits) == 3:
                hex_digits = "".join(ch * 2 for ch in hex_digits)
            if len(hex_digits) >= 6:
                try:
                    return cls(
                        r=int(hex_digits[0:2], 16),
                        g=int(hex_digits[2:4], 16),
                        b=int(hex_digits[4:6], 16),
                    )
                except ValueError:
                    return cls()
            return cls()

        match = _RGB_PATTERN.match(text)
        if match:
            parts = [p.strip() for p in match.group(1).split(",")]
            try:
                r, g, b = (max(0, min(255, int(float(p)))) for p in parts[:3])
                alpha = 255
                if len(parts) >= 4:
                    alpha = round(max(0.0, min(1.0, float(parts[3]))) * 255)
                return cls(r=r, g=g, b=b, a=alpha)
            except ValueError:
                return cls()

        return cls()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"r": self.r, "g": self.g, "b": self.b, "a": self.a}


def _pick(data: dict[str, Any], key: str, alias: Optional[str] = None, default: Any = None) -> Any:
    """Read ``key`` from data, falling back to its camelCase alias."""
    if key in data:
        return data[key]
    if alias is not None and alias in data:
        return data[alias]
    return default


@dataclass(frozen=True)
class TextStyle:
    """Text style chosen in the editor.

    Bold/italic are expected to be baked into ``font_id`` upstream;
    ``font_weight`` and ``font_style`` are kept for fallback font selection.
    """

    font_id: str
    font_size: float
    font_weight: str = "normal"
    font_style: str = "normal"
    color: str = "#000000"
    align: str = "left"

    @property
    def is_bold(self) -> bool:
        return self.font_weight == "bold"

    @property
    def is_italic(self) -> bool:
        return self.font_style == "italic"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "font_id": self.font_id,
            "font_size": self.font_size,
            "font_weight": self.font_weight,
            "font_style": self.font_style,
            "color": self.color,
            "align": self.align,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TextStyle:
        """Create from dictionary (snake_case or camelCase keys)."""
        return cls(
            font_id=str(_pick(data, "font_id", "fontId", "")),
            font_size=float(_pick(data, "font_size", "fontSize", 16.0)),
            font_weight=str(_pick(data, "font_weight", "fontWeight", "normal")),
            font_style=str(_pick(data, "font_style", "fontStyle", "normal")),
            color=str(_pick(data, "color", default="#000000")),
            align=str(_pick(data, "align", default="left")),
        )


@dataclass(frozen=True)
class MaskOperation:
    """Opaque rectangle hiding original page content."""

    id: str
    page_number: int
    x: float
    y: float
    width: float
    height: float
    type: OperationType = field(default=OperationType.ADD_MASK, init=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": self.type.value,
            "id": self.id,
            "page_number": self.page_number,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MaskOperation:
        """Create from dictionary."""
        return cls(
            id=str(data["id"]),
            page_number=int(_pick(data, "page_number", "pageNumber")),
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
        )


@dataclass(frozen=True)
class TextEditOperation:
    """New or replacement text placed on a page.

    Attributes:
        original_text: Text being replaced (overlay edits only)
        type: ``ADD_TEXT`` or ``OVERLAY_TEXT``
    """

    id: str
    page_number: int
    text: str
    x: float
    y: float
    width: float
    height: float
    style: TextStyle
    original_text: Optional[str] = None
    type: OperationType = OperationType.ADD_TEXT

    def __post_init__(self) -> None:
        if self.type not in TEXT_OPERATION_TYPES:
            raise ValueError(f"Invalid text operation type: {self.type}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "type": self.type.value,
            "id": self.id,
            "page_number": self.page_number,
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "style": self.style.to_dict(),
        }
        if self.original_text is not None:
            result["original_text"] = self.original_text
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TextEditOperation:
        """Create from dictionary."""
        return cls(
            id=str(data["id"]),
            page_number=int(_pick(data, "page_number", "pageNumber")),
            text=str(data.get("text", "")),
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data.get("width", 0.0)),
            height=float(data.get("height", 0.0)),
            style=TextStyle.from_dict(data.get("style", {})),
            original_text=_pick(data, "original_text", "originalText"),
            type=OperationType(data.get("type", OperationType.ADD_TEXT.value)),
        )


@dataclass(frozen=True)
class ImageOperation:
    """Raster image inserted on a page.

    Attributes:
        image_data: Raw PNG/JPEG bytes or a ``data:image/...;base64,`` URL
        rotation: Rotation in degrees
    """

    id: str
    page_number: int
    image_data: Union[bytes, str]
    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0
    type: OperationType = field(default=OperationType.ADD_IMAGE, init=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Raw bytes are emitted as a base64 data URL.
        """
        image_data = self.image_data
        if isinstance(image_data, bytes):
            image_data = to_data_url(image_data)
        return {
            "type": self.type.value,
            "id": self.id,
            "page_number": self.page_number,
            "image_data": image_data,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "rotation": self.rotation,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImageOperation:
        """Create from dictionary."""
        return cls(
            id=str(data["id"]),
            page_number=int(_pick(data, "page_number", "pageNumber")),
            image_data=_pick(data, "image_data", "imageData", ""),
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
            rotation=float(data.get("rotation", 0.0)),
        )


@dataclass(frozen=True)
class DrawPathOperation:
    """Freehand stroke captured from the brush tool.

    Attributes:
        path: Draw commands such as ``["M", x, y]`` or ``["Q", cx, cy, x, y]``
    """

    id: str
    page_number: int
    path: tuple[tuple[Any, ...], ...]
    color: str = "#000000"
    stroke_width: float = 1.0
    type: OperationType = field(default=OperationType.DRAW_PATH, init=False)

    def __post_init__(self) -> None:
        # Freeze nested command lists so the snapshot stays immutable
        object.__setattr__(self, "path", tuple(tuple(cmd) for cmd in self.path))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": self.type.value,
            "id": self.id,
            "page_number": self.page_number,
            "path": [list(cmd) for cmd in self.path],
            "color": self.color,
            "stroke_width": self.stroke_width,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DrawPathOperation:
        """Create from dictionary."""
        return cls(
            id=str(data["id"]),
            page_number=int(_pick(data, "page_number", "pageNumber")),
            path=tuple(tuple(cmd) for cmd in data.get("path") or ()),
            color=str(data.get("color", "#000000")),
            stroke_width=float(_pick(data, "stroke_width", "strokeWidth", 1.0)),
        )


EditOperation = Union[MaskOperation, TextEditOperation, ImageOperation, DrawPathOperation]

_OPERATION_CLASSES: dict[OperationType, Any] = {
    OperationType.ADD_MASK: MaskOperation,
    OperationType.OVERLAY_TEXT: TextEditOperation,
    OperationType.ADD_TEXT: TextEditOperation,
    OperationType.ADD_IMAGE: ImageOperation,
    OperationType.DRAW_PATH: DrawPathOperation,
}


def operation_from_dict(data: dict[str, Any]) -> EditOperation:
    """Create an operation from a dictionary, dispatching on its ``type`` tag.

    Raises:
        ValueError: If the tag is missing or unknown
    """
    tag = data.get("type")
    try:
        op_type = OperationType(tag)
    except ValueError:
        raise ValueError(f"Unknown operation type: {tag!r}") from None
    result: EditOperation = _OPERATION_CLASSES[op_type].from_dict(data)
    return result


def load_operations(json_str: str) -> list[EditOperation]:
    """Parse a JSON array of operations.

    A ``{"version": ..., "operations": [...]}`` envelope is accepted too.
    """
    data = json.loads(json_str)
    if isinstance(data, dict):
        data = data.get("operations", [])
    return [operation_from_dict(item) for item in data]


def dump_operations(operations: Iterable[EditOperation], indent: int = 2) -> str:
    """Serialize operations to a JSON envelope."""
    payload = {
        "version": SCHEMA_VERSION,
        "operations": [op.to_dict() for op in operations],
    }
    return json.dumps(payload, ensure_ascii=False, indent=indent)


def group_operations_by_page(
    operations: Iterable[EditOperation],
) -> dict[int, list[EditOperation]]:
    """Group operations by page number, keeping recorded order per page."""
    grouped: dict[int, list[EditOperation]] = {}
    for op in operations:
        grouped.setdefault(op.page_number, []).append(op)
    return grouped


def collect_font_chars(operations: Iterable[EditOperation]) -> dict[str, str]:
    """Collect the unique characters rendered with each font id.

    Returns:
        Mapping of font id to its characters in first-seen order.
    """
    chars_by_font: dict[str, dict[str, None]] = {}
    for op in operations:
        if op.type not in TEXT_OPERATION_TYPES:
            continue
        assert isinstance(op, TextEditOperation)
        font_id = op.style.font_id
        if not font_id or not op.text:
            continue
        seen = chars_by_font.setdefault(font_id, {})
        for char in op.text:
            seen.setdefault(char, None)
    return {font_id: "".join(chars) for font_id, chars in chars_by_font.items()}


class OperationSet:
    """Ordered, id-keyed collection of edit operations.

    Mirrors the editor's bookkeeping: adding an operation whose id already
    exists replaces it in place, otherwise it is appended.

    Example:
        >>> ops = OperationSet()
        >>> ops.add(MaskOperation("m1", 1, 10, 10, 50, 20))
        >>> ops.add(MaskOperation("m1", 1, 12, 10, 50, 20))  # replaces
        >>> len(ops)
        1
    """

    def __init__(self, operations: Optional[Sequence[EditOperation]] = None) -> None:
        self._operations: list[EditOperation] = []
        for op in operations or ():
            self.add(op)

    def __len__(self) -> int:
        return len(self._operations)

    def __iter__(self) -> Iterator[EditOperation]:
        return iter(list(self._operations))

    def __contains__(self, operation_id: object) -> bool:
        return any(op.id == operation_id for op in self._operations)

    def _index_of(self, operation_id: str) -> int:
        for index, op in enumerate(self._operations):
            if op.id == operation_id:
                return index
        return -1

    def get(self, operation_id: str) -> Optional[EditOperation]:
        """Return the operation with the given id, if any."""
        index = self._index_of(operation_id)
        return self._operations[index] if index >= 0 else None

    def add(self, operation: EditOperation) -> None:
        """Insert an operation, replacing any existing one with the same id."""
        index = self._index_of(operation.id)
        if index >= 0:
            self._operations[index] = operation
        else:
            self._operations.append(operation)

    def update(self, operation_id: str, **changes: Any) -> EditOperation:
        """Replace an operation with a modified copy.

        Raises:
            KeyError: If no operation has the given id
        """
        index = self._index_of(operation_id)
        if index < 0:
            raise KeyError(operation_id)
        if "id" in changes and changes["id"] != operation_id:
            raise ValueError("Operation id cannot be changed")
        updated = replace(self._operations[index], **changes)
        self._operations[index] = updated
        return updated

    def remove(self, operation_id: str) -> bool:
        """Remove an operation by id. Returns True if something was removed."""
        index = self._index_of(operation_id)
        if index < 0:
            return False
        del self._operations[index]
        return True

    def page_operations(self, page_number: int) -> list[EditOperation]:
        """Operations recorded for one page (1-indexed)."""
        return [op for op in self._operations if op.page_number == page_number]

    def undo(self) -> Optional[EditOperation]:
        """Drop the most recently appended operation."""
        if not self._operations:
            return None
        return self._operations.pop()

    def clear(self) -> None:
        """Remove all operations."""
        self._operations.clear()

    def to_list(self) -> list[EditOperation]:
        """Snapshot of the operations in recorded order."""
        return list(self._operations)
