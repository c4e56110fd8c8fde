from bulk_entry.models import Field, Subject, SubjectResult
from bulk_entry.validation import validate_cell, validate_row

MATH = Subject(subject_id="math", name="Mathematics", question_count=40)


def test_valid_value_passes():
    assert validate_cell(MATH, Field.CORRECT, 25, None) is None


def test_negative_value():
    assert validate_cell(MATH, Field.WRONG, -1, None) == "Negative value not allowed"


def test_value_over_question_count():
    assert validate_cell(MATH, Field.CORRECT, 41, None) == "Exceeds question count (max 40)"


def test_value_equal_to_question_count_is_allowed():
    assert validate_cell(MATH, Field.EMPTY, 40, None) is None


def test_row_total_uses_other_fields():
    current = SubjectResult("math", correct_count=30, wrong_count=8, empty_count=0)
    error = validate_cell(MATH, Field.EMPTY, 5, current)
    assert error == "Row total 43 exceeds question count (40)"


def test_row_total_ignores_old_value_of_same_field():
    current = SubjectResult("math", correct_count=30, wrong_count=8, empty_count=2)
    assert validate_cell(MATH, Field.EMPTY, 2, current) is None
    assert validate_cell(MATH, Field.CORRECT, 29, current) is None


def test_first_failing_rule_wins():
    current = SubjectResult("math", correct_count=30)
    assert validate_cell(MATH, Field.WRONG, 50, current) == "Exceeds question count (max 40)"


def test_validate_row():
    assert validate_row(MATH, SubjectResult("math", 20, 10, 10)) is None
    assert validate_row(MATH, SubjectResult("math", 20, 15, 10)) is not None


def test_correct_pushes_row_over_twenty():
    science = Subject(subject_id="sci", name="Science", question_count=20)
    current = SubjectResult("sci", correct_count=0, wrong_count=10, empty_count=0)
    assert validate_cell(science, Field.CORRECT, 15, current) == "Row total 25 exceeds question count (20)"
