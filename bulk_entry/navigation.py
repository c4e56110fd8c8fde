"""Keyboard navigation across the (student x subject x field) entry grid.

:func:`next_position` is a pure function of the grid shape and the current
position; it holds no state. A move that would leave the grid returns the
position unchanged.
"""
from enum import Enum
from typing import NamedTuple

from bulk_entry.models import FIELD_ORDER, Field


class Key(str, Enum):
    ENTER = "Enter"
    ARROW_DOWN = "ArrowDown"
    ARROW_UP = "ArrowUp"
    TAB = "Tab"


class CellPosition(NamedTuple):
    student_index: int
    subject_index: int
    field: Field


def _linear(pos: CellPosition, subject_count: int) -> int:
    return (pos.student_index * subject_count + pos.subject_index) * len(FIELD_ORDER) \
        + FIELD_ORDER.index(pos.field)


def _from_linear(index: int, subject_count: int) -> CellPosition:
    cell, field_index = divmod(index, len(FIELD_ORDER))
    student_index, subject_index = divmod(cell, subject_count)
    return CellPosition(student_index, subject_index, FIELD_ORDER[field_index])


def next_position(
    position: CellPosition,
    key: Key,
    student_count: int,
    subject_count: int,
    shift: bool = False,
) -> CellPosition:
    """Return the cell that should receive focus after *key*.

    Enter/ArrowDown and ArrowUp move one student row in the same column.
    Tab walks correct -> wrong -> empty, then on to the next subject and
    finally the next student; Shift+Tab walks the same path backwards.
    """
    if student_count <= 0 or subject_count <= 0:
        return position
    key = Key(key)

    if key in (Key.ENTER, Key.ARROW_DOWN):
        if position.student_index + 1 < student_count:
            return position._replace(student_index=position.student_index + 1)
        return position

    if key is Key.ARROW_UP:
        if position.student_index > 0:
            return position._replace(student_index=position.student_index - 1)
        return position

    # Tab / Shift+Tab: the grid is one row-major sequence of cells.
    last = student_count * subject_count * len(FIELD_ORDER) - 1
    current = _linear(position, subject_count)
    target = current - 1 if shift else current + 1
    if target < 0 or target > last:
        return position
    return _from_linear(target, subject_count)
