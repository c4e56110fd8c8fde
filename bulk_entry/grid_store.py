"""In-memory state of one bulk-entry session.

The store owns every :class:`StudentResult`, :class:`SubjectResult` and
:class:`CellError` for the lifetime of one editing session. Mutations go
through :meth:`ResultGridStore.set_cell` (typed input) or
:meth:`ResultGridStore.bulk_apply` (pasted rows); both validate, store the
value even when it is invalid, recompute the student's total net and keep the
error set in sync.
"""
import dataclasses
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Union

from bulk_entry.models import (
    FIELD_ORDER,
    CellError,
    Field,
    Student,
    StudentResult,
    Subject,
    SubjectResult,
)
from bulk_entry.paste_import import ParsedPasteRow, parse_count
from bulk_entry.scoring import check_penalty_divisor, compute_net, total_net
from bulk_entry.validation import validate_cell

logger = logging.getLogger(__name__)


def _copy_student(result: StudentResult) -> StudentResult:
    return StudentResult(
        student_id=result.student_id,
        student_name=result.student_name,
        subjects={k: dataclasses.replace(v) for k, v in result.subjects.items()},
        total_net=result.total_net,
    )


class ResultGridStore:
    def __init__(
        self,
        subjects: Sequence[Subject],
        students: Sequence[Student],
        penalty_divisor: float,
    ):
        self._penalty_divisor = check_penalty_divisor(penalty_divisor)
        self._subjects: List[Subject] = list(subjects)
        self._subject_by_id: Dict[str, Subject] = {s.subject_id: s for s in self._subjects}
        self._students: List[Student] = list(students)
        self._student_by_id: Dict[str, Student] = {s.student_id: s for s in self._students}
        self._results: Dict[str, StudentResult] = {}
        self._errors: Dict[tuple, CellError] = {}

    # ── Read access ───────────────────────────────────────────────────────────

    @property
    def subjects(self) -> List[Subject]:
        return list(self._subjects)

    @property
    def students(self) -> List[Student]:
        return list(self._students)

    @property
    def penalty_divisor(self) -> float:
        return self._penalty_divisor

    def get_cell(self, student_id: str, subject_id: str) -> Optional[SubjectResult]:
        result = self._results.get(student_id)
        if result is None or subject_id not in result.subjects:
            return None
        return dataclasses.replace(result.subjects[subject_id])

    def get_student(self, student_id: str) -> Optional[StudentResult]:
        result = self._results.get(student_id)
        return _copy_student(result) if result is not None else None

    def total_net(self, student_id: str) -> float:
        result = self._results.get(student_id)
        return result.total_net if result is not None else 0.0

    def subject_net(self, student_id: str, subject_id: str) -> float:
        sr = self.get_cell(student_id, subject_id)
        if sr is None:
            return 0.0
        return compute_net(sr.correct_count, sr.wrong_count, self._penalty_divisor)

    # ── Mutation ──────────────────────────────────────────────────────────────

    def set_cell(
        self,
        student_id: str,
        subject_id: str,
        field: Union[Field, str],
        raw_input: Union[str, int, None],
    ) -> Optional[CellError]:
        """Parse *raw_input*, validate and store it; return the cell's error.

        Text that is not a non-negative integer is stored as 0. Repeating the
        same call leaves the store unchanged.
        """
        value, _ = parse_count("" if raw_input is None else str(raw_input))
        return self._apply(student_id, self._subject(subject_id), Field(field), value)

    def bulk_apply(self, rows: Iterable[ParsedPasteRow]) -> int:
        """Apply parsed paste rows; rows for unknown students are skipped.

        Returns the number of rows applied.
        """
        applied = 0
        for row in rows:
            if row.student_id not in self._student_by_id:
                logger.debug("bulk_apply: unknown student %r (line %d) skipped",
                             row.student_id, row.line_number)
                continue
            for subject_id, sr in row.results.items():
                subject = self._subject(subject_id)
                for which in FIELD_ORDER:
                    self._apply(row.student_id, subject, which, max(0, sr.get(which)))
            applied += 1
        return applied

    def hydrate(self, records: Iterable[dict]) -> int:
        """Replace the current state with previously persisted records.

        Each record carries ``student_id``, ``subject_id``, ``correct_count``,
        ``wrong_count`` and ``empty_count``. Records for students or subjects
        outside this grid are ignored.
        """
        self.clear()
        loaded = 0
        for rec in records:
            student_id = str(rec.get("student_id", ""))
            subject_id = str(rec.get("subject_id", ""))
            if student_id not in self._student_by_id or subject_id not in self._subject_by_id:
                logger.debug("hydrate: ignoring record for student %r subject %r",
                             student_id, subject_id)
                continue
            subject = self._subject_by_id[subject_id]
            for which in FIELD_ORDER:
                value, _ = parse_count(str(rec.get(f"{which.value}_count", 0)))
                self._apply(student_id, subject, which, value)
            loaded += 1
        return loaded

    def clear(self) -> None:
        self._results.clear()
        self._errors.clear()

    # ── Errors and snapshot ───────────────────────────────────────────────────

    def has_blocking_errors(self) -> bool:
        return bool(self._errors)

    def error_count(self) -> int:
        return len(self._errors)

    def errors(self) -> List[CellError]:
        return list(self._errors.values())

    def cell_error(self, student_id: str, subject_id: str,
                   field: Union[Field, str]) -> Optional[CellError]:
        return self._errors.get((student_id, subject_id, Field(field)))

    def snapshot(self) -> List[StudentResult]:
        """Return students with at least one non-empty subject, roster order first."""
        order = {s.student_id: i for i, s in enumerate(self._students)}
        subject_order = {s.subject_id: i for i, s in enumerate(self._subjects)}
        out = []
        for result in sorted(self._results.values(),
                             key=lambda r: order.get(r.student_id, len(order))):
            if not result.has_data():
                continue
            copy = _copy_student(result)
            copy.subjects = dict(sorted(
                copy.subjects.items(), key=lambda kv: subject_order[kv[0]]))
            out.append(copy)
        return out

    def students_with_data(self) -> int:
        return sum(1 for r in self._results.values() if r.has_data())

    def completion_percentage(self) -> int:
        if not self._students:
            return 0
        return round(100 * self.students_with_data() / len(self._students))

    # ── Internal ──────────────────────────────────────────────────────────────

    def _subject(self, subject_id: str) -> Subject:
        try:
            return self._subject_by_id[subject_id]
        except KeyError:
            raise KeyError(f"subject {subject_id!r} is not part of this exam type") from None

    def _ensure_student(self, student_id: str) -> StudentResult:
        result = self._results.get(student_id)
        if result is None:
            student = self._student_by_id.get(student_id)
            name = student.full_name if student is not None else student_id
            result = StudentResult(student_id=student_id, student_name=name)
            self._results[student_id] = result
        return result

    def _set_error(self, student_id: str, subject_id: str, which: Field,
                   message: Optional[str]) -> Optional[CellError]:
        key = (student_id, subject_id, which)
        if message is None:
            self._errors.pop(key, None)
            return None
        error = CellError(student_id, subject_id, which, message)
        self._errors[key] = error
        return error

    def _apply(self, student_id: str, subject: Subject, which: Field,
               value: int) -> Optional[CellError]:
        student_result = self._ensure_student(student_id)
        current = student_result.subjects.get(subject.subject_id)
        message = validate_cell(subject, which, value, current)

        if current is None:
            current = SubjectResult(subject_id=subject.subject_id)
            student_result.subjects[subject.subject_id] = current
        current.set(which, value)
        student_result.total_net = total_net(
            student_result.subjects.values(), self._penalty_divisor)

        error = self._set_error(student_id, subject.subject_id, which, message)
        # A sibling flagged for the row total may be valid now.
        for other in FIELD_ORDER:
            if other is which or (student_id, subject.subject_id, other) not in self._errors:
                continue
            self._set_error(student_id, subject.subject_id, other,
                            validate_cell(subject, other, current.get(other), current))
        return error
