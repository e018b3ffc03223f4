# SPDX-License-Identifier: Apache-2.0
"""Freehand stroke path translation.

Strokes are captured as a list of draw commands, each ``[opcode, *operands]``
with raster-space coordinate pairs. Translation scales every operand and
keeps the y axis as-is: the path is drawn with its origin placed at the
page's top edge, so it stays in the raster convention.
"""

from __future__ import annotations

from numbers import Real
from typing import Any, Iterable, Sequence

# Operand count per opcode
COMMAND_ARITY: dict[str, int] = {
    "M": 2,  # move
    "L": 2,  # line
    "Q": 4,  # quadratic curve: control, end
    "C": 6,  # cubic curve: control 1, control 2, end
    "Z": 0,  # close
}


def _validate_command(command: Sequence[Any], index: int) -> str:
    if not command:
        raise ValueError(f"Empty path command at index {index}")
    opcode = command[0]
    if not isinstance(opcode, str) or opcode not in COMMAND_ARITY:
        raise ValueError(f"Unknown path opcode {opcode!r} at index {index}")
    expected = COMMAND_ARITY[opcode]
    operands = command[1:]
    if len(operands) != expected:
        raise ValueError(
            f"Path command {opcode!r} at index {index} expects {expected} "
            f"operands, got {len(operands)}"
        )
    for value in operands:
        if isinstance(value, bool) or not isinstance(value, Real):
            raise ValueError(f"Non-numeric operand {value!r} at index {index}")
    return opcode


def translate_path(
    commands: Iterable[Sequence[Any]], scale: float
) -> list[list[Any]]:
    """Scale every numeric operand of a path by ``scale``.

    Command order and arity are preserved exactly; there is no smoothing.

    Args:
        commands: Draw commands such as ``["M", 10, 10]``
        scale: PDF units per raster pixel

    Returns:
        New list of commands with scaled operands.

    Raises:
        ValueError: On unknown opcodes, wrong arity or non-numeric operands

    Example:
        >>> translate_path([["M", 10, 10], ["L", 20, 20]], 0.5)
        [['M', 5.0, 5.0], ['L', 10.0, 10.0]]
    """
    translated: list[list[Any]] = []
    for index, command in enumerate(commands):
        opcode = _validate_command(command, index)
        translated.append([opcode, *(float(value) * scale for value in command[1:])])
    return translated


def translate_stroke_width(stroke_width: float, scale: float) -> float:
    """Scale a stroke width with the same factor as the path."""
    return stroke_width * scale


def path_to_svg(commands: Iterable[Sequence[Any]]) -> str:
    """Render commands as an SVG path string (``"M 5 5 L 10 10"``)."""
    parts = []
    for command in commands:
        parts.append(
            " ".join(value if isinstance(value, str) else f"{value:g}" for value in command)
        )
    return " ".join(parts)
