import pytest

from bulk_entry.models import Field
from bulk_entry.navigation import CellPosition, Key, next_position

STUDENTS = 3
SUBJECTS = 2


def nav(pos, key, shift=False):
    return next_position(pos, key, STUDENTS, SUBJECTS, shift=shift)


@pytest.mark.parametrize("key", [Key.ENTER, Key.ARROW_DOWN])
def test_down_moves_one_student(key):
    assert nav(CellPosition(0, 1, Field.WRONG), key) == CellPosition(1, 1, Field.WRONG)


@pytest.mark.parametrize("key", [Key.ENTER, Key.ARROW_DOWN])
def test_down_on_last_student_is_noop(key):
    pos = CellPosition(2, 0, Field.EMPTY)
    assert nav(pos, key) == pos


def test_up():
    assert nav(CellPosition(2, 0, Field.CORRECT), Key.ARROW_UP) == CellPosition(1, 0, Field.CORRECT)
    pos = CellPosition(0, 1, Field.EMPTY)
    assert nav(pos, Key.ARROW_UP) == pos


def test_tab_walks_fields_then_subjects_then_students():
    pos = CellPosition(0, 0, Field.CORRECT)
    assert nav(pos, Key.TAB) == CellPosition(0, 0, Field.WRONG)
    assert nav(CellPosition(0, 0, Field.WRONG), Key.TAB) == CellPosition(0, 0, Field.EMPTY)
    assert nav(CellPosition(0, 0, Field.EMPTY), Key.TAB) == CellPosition(0, 1, Field.CORRECT)
    assert nav(CellPosition(0, 1, Field.EMPTY), Key.TAB) == CellPosition(1, 0, Field.CORRECT)


def test_tab_on_last_cell_is_noop():
    pos = CellPosition(2, 1, Field.EMPTY)
    assert nav(pos, Key.TAB) == pos


def test_shift_tab_walks_backwards():
    assert nav(CellPosition(1, 0, Field.CORRECT), Key.TAB, shift=True) == CellPosition(0, 1, Field.EMPTY)
    assert nav(CellPosition(0, 1, Field.CORRECT), Key.TAB, shift=True) == CellPosition(0, 0, Field.EMPTY)
    pos = CellPosition(0, 0, Field.CORRECT)
    assert nav(pos, Key.TAB, shift=True) == pos


def test_every_position_stays_in_bounds():
    for s in range(STUDENTS):
        for j in range(SUBJECTS):
            for f in Field:
                for key in Key:
                    for shift in (False, True):
                        target = nav(CellPosition(s, j, f), key, shift)
                        assert 0 <= target.student_index < STUDENTS
                        assert 0 <= target.subject_index < SUBJECTS


def test_empty_grid_returns_position():
    pos = CellPosition(0, 0, Field.CORRECT)
    assert next_position(pos, Key.TAB, 0, 0) == pos


def test_key_accepts_string_value():
    assert nav(CellPosition(0, 0, Field.CORRECT), "Tab") == CellPosition(0, 0, Field.WRONG)
