# SPDX-License-Identifier: Apache-2.0
"""Tests for models module."""

from __future__ import annotations

import dataclasses
import json

import pytest

from pdf_compositor.core.models import (
    BBox,
    Color,
    DrawPathOperation,
    ImageOperation,
    MaskOperation,
    OperationSet,
    OperationType,
    TextEditOperation,
    TextStyle,
    collect_font_chars,
    dump_operations,
    group_operations_by_page,
    load_operations,
    operation_from_dict,
)


def _text(op_id: str, text: str, font_id: str = "helvetica", page: int = 1) -> TextEditOperation:
    return TextEditOperation(
        id=op_id,
        page_number=page,
        text=text,
        x=10,
        y=20,
        width=100,
        height=20,
        style=TextStyle(font_id=font_id, font_size=16),
    )


class TestBBox:
    """Tests for BBox dataclass."""

    def test_width_height(self) -> None:
        bbox = BBox(x0=10, y0=20, x1=110, y1=70)
        assert bbox.width == 100
        assert bbox.height == 50

    def test_to_dict(self) -> None:
        assert BBox(1, 2, 3, 4).to_dict() == {"x0": 1, "y0": 2, "x1": 3, "y1": 4}


class TestColorParse:
    """Tests for Color.parse()."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("#ff0000", Color(255, 0, 0)),
            ("#00FF7f", Color(0, 255, 127)),
            ("#abc", Color(0xAA, 0xBB, 0xCC)),
            ("rgb(10, 20, 30)", Color(10, 20, 30)),
            ("rgba(10, 20, 30, 0.5)", Color(10, 20, 30, 128)),
            ("RGB(300, -5, 0)", Color(255, 0, 0)),
        ],
    )
    def test_supported_formats(self, value: str, expected: Color) -> None:
        assert Color.parse(value) == expected

    @pytest.mark.parametrize("value", [None, "", "red", "#12", "#zzzzzz", "rgb(a, b, c)"])
    def test_unparseable_is_black(self, value: str | None) -> None:
        """Anything that is not hex or rgb()/rgba() falls back to opaque black."""
        assert Color.parse(value) == Color(0, 0, 0, 255)


class TestOperations:
    """Tests for operation dataclasses."""

    def test_type_tags(self) -> None:
        assert MaskOperation("m", 1, 0, 0, 1, 1).type == OperationType.ADD_MASK
        assert ImageOperation("i", 1, b"", 0, 0, 1, 1).type == OperationType.ADD_IMAGE
        assert DrawPathOperation("p", 1, [["M", 0, 0]]).type == OperationType.DRAW_PATH
        assert _text("t", "x").type == OperationType.ADD_TEXT

    def test_text_type_must_be_text_tag(self) -> None:
        with pytest.raises(ValueError, match="Invalid text operation type"):
            TextEditOperation(
                id="t",
                page_number=1,
                text="x",
                x=0,
                y=0,
                width=0,
                height=0,
                style=TextStyle("helvetica", 12),
                type=OperationType.ADD_MASK,
            )

    def test_operations_are_immutable(self) -> None:
        op = MaskOperation("m", 1, 0, 0, 10, 10)
        with pytest.raises(dataclasses.FrozenInstanceError):
            op.x = 5  # type: ignore[misc]

    def test_path_is_frozen_to_tuples(self) -> None:
        commands = [["M", 1, 2], ["L", 3, 4]]
        op = DrawPathOperation("p", 1, commands)  # type: ignore[arg-type]
        commands[0][1] = 99
        assert op.path == (("M", 1, 2), ("L", 3, 4))


class TestSerialization:
    """Tests for dict / JSON conversion."""

    def test_camel_case_keys(self) -> None:
        op = operation_from_dict(
            {
                "type": "OVERLAY_TEXT",
                "id": "t1",
                "pageNumber": 2,
                "text": "Hello",
                "originalText": "Hallo",
                "x": 1,
                "y": 2,
                "width": 30,
                "height": 12,
                "style": {"fontId": "times-bold", "fontSize": 14, "color": "#333333"},
            }
        )
        assert isinstance(op, TextEditOperation)
        assert op.type == OperationType.OVERLAY_TEXT
        assert op.page_number == 2
        assert op.original_text == "Hallo"
        assert op.style.font_id == "times-bold"
        assert op.style.font_size == 14.0

    def test_path_stroke_width_alias(self) -> None:
        op = operation_from_dict(
            {
                "type": "DRAW_PATH",
                "id": "p1",
                "pageNumber": 1,
                "path": [["M", 10, 10], ["L", 20, 20]],
                "color": "#ff0000",
                "strokeWidth": 3,
            }
        )
        assert isinstance(op, DrawPathOperation)
        assert op.stroke_width == 3.0
        assert op.path[1] == ("L", 20, 20)

    def test_unknown_tag(self) -> None:
        with pytest.raises(ValueError, match="Unknown operation type"):
            operation_from_dict({"type": "ADD_SHAPE", "id": "x"})

    def test_missing_tag(self) -> None:
        with pytest.raises(ValueError, match="Unknown operation type"):
            operation_from_dict({"id": "x"})

    def test_dump_and_load(self) -> None:
        ops = [
            MaskOperation("m1", 1, 5, 6, 7, 8),
            _text("t1", "Hi"),
            DrawPathOperation("p1", 2, [["M", 0, 0], ["Z"]], "#00ff00", 2.5),
        ]
        text = dump_operations(ops)
        assert json.loads(text)["version"] == "1.0.0"
        assert load_operations(text) == ops

    def test_load_plain_array(self) -> None:
        ops = load_operations('[{"type": "ADD_MASK", "id": "m", "page_number": 1,'
                              ' "x": 0, "y": 0, "width": 5, "height": 5}]')
        assert ops == [MaskOperation("m", 1, 0, 0, 5, 5)]

    def test_image_bytes_dumped_as_data_url(self, png_bytes: bytes) -> None:
        op = ImageOperation("i1", 1, png_bytes, 0, 0, 10, 10)
        data = op.to_dict()
        assert data["image_data"].startswith("data:image/png;base64,")


class TestGrouping:
    """Tests for page grouping and font character collection."""

    def test_group_keeps_recorded_order(self) -> None:
        ops = [
            MaskOperation("a", 2, 0, 0, 1, 1),
            _text("b", "x", page=1),
            MaskOperation("c", 2, 0, 0, 1, 1),
        ]
        grouped = group_operations_by_page(ops)
        assert [op.id for op in grouped[2]] == ["a", "c"]
        assert [op.id for op in grouped[1]] == ["b"]

    def test_collect_font_chars(self) -> None:
        ops = [
            _text("t1", "abca", font_id="custom"),
            _text("t2", "cb d", font_id="custom"),
            _text("t3", "Z", font_id="helvetica"),
            MaskOperation("m", 1, 0, 0, 1, 1),
            _text("t4", "", font_id="empty"),
        ]
        assert collect_font_chars(ops) == {"custom": "abc d", "helvetica": "Z"}


class TestOperationSet:
    """Tests for OperationSet."""

    def test_add_replaces_in_place(self) -> None:
        ops = OperationSet()
        ops.add(MaskOperation("a", 1, 0, 0, 1, 1))
        ops.add(MaskOperation("b", 1, 0, 0, 1, 1))
        ops.add(MaskOperation("a", 1, 9, 9, 1, 1))

        assert len(ops) == 2
        assert [op.id for op in ops] == ["a", "b"]
        assert ops.get("a").x == 9  # type: ignore[union-attr]

    def test_update(self) -> None:
        ops = OperationSet([_text("t", "old")])
        updated = ops.update("t", text="new")
        assert isinstance(updated, TextEditOperation)
        assert updated.text == "new"
        assert ops.get("t") == updated

    def test_update_unknown_id(self) -> None:
        with pytest.raises(KeyError):
            OperationSet().update("missing", x=1)

    def test_update_cannot_change_id(self) -> None:
        ops = OperationSet([MaskOperation("a", 1, 0, 0, 1, 1)])
        with pytest.raises(ValueError, match="cannot be changed"):
            ops.update("a", id="b")

    def test_remove_undo_clear(self) -> None:
        ops = OperationSet(
            [MaskOperation("a", 1, 0, 0, 1, 1), MaskOperation("b", 2, 0, 0, 1, 1)]
        )
        assert "a" in ops
        assert ops.remove("a") is True
        assert ops.remove("a") is False
        assert ops.undo().id == "b"  # type: ignore[union-attr]
        assert ops.undo() is None

        ops.add(MaskOperation("c", 3, 0, 0, 1, 1))
        ops.clear()
        assert len(ops) == 0

    def test_page_operations(self) -> None:
        ops = OperationSet(
            [MaskOperation("a", 1, 0, 0, 1, 1), MaskOperation("b", 2, 0, 0, 1, 1)]
        )
        assert [op.id for op in ops.page_operations(2)] == ["b"]
