"""Per-cell and per-row checks applied before values reach the grid store.

Validation never raises: a failing check returns a human-readable message and
the caller decides what to do with it (the grid store keeps the typed value
and records a :class:`~bulk_entry.models.CellError`).
"""
from typing import Optional

from bulk_entry.models import FIELD_ORDER, Field, Subject, SubjectResult


def validate_cell(
    subject: Subject,
    field: Field,
    proposed_value: int,
    current: Optional[SubjectResult],
) -> Optional[str]:
    """Return an error message for *proposed_value* in *field*, or None.

    Rules are applied in order and the first failure wins: negative value,
    value above the question count, then the row total (the proposed value
    plus the other two fields of *current*, unset fields counting as 0).
    """
    if proposed_value < 0:
        return "Negative value not allowed"
    if proposed_value > subject.question_count:
        return f"Exceeds question count (max {subject.question_count})"

    total = proposed_value
    if current is not None:
        total += sum(current.get(other) for other in FIELD_ORDER if other is not field)
    if total > subject.question_count:
        return (
            f"Row total {total} exceeds question count "
            f"({subject.question_count})"
        )
    return None


def validate_row(subject: Subject, result: SubjectResult) -> Optional[str]:
    """Check a complete row, e.g. one read from a spreadsheet."""
    for which in FIELD_ORDER:
        error = validate_cell(subject, which, result.get(which), result)
        if error:
            return error
    return None
