"""Parse clipboard text (tab/newline delimited) into per-student subject results.

Each line is ``<student token>\\t<correct>\\t<wrong>\\t<empty>\\t<correct>...``
with one (correct, wrong, empty) triple per subject, in subject order. The
parser is deliberately lenient: lines without values and unknown students are
dropped, short rows are zero-filled and non-numeric cells count as 0. Every
such decision is recorded as a :class:`PasteWarning` so the caller can show it
to the user.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from bulk_entry.models import FIELD_ORDER, Student, Subject, SubjectResult

logger = logging.getLogger(__name__)

StudentResolver = Callable[[str], Optional[Student]]


@dataclass
class PasteWarning:
    line_number: int    # 1-based line in the pasted text
    token: str          # first column of that line
    message: str


@dataclass
class ParsedPasteRow:
    line_number: int
    student_id: str
    results: Dict[str, SubjectResult] = field(default_factory=dict)


@dataclass
class PasteImportResult:
    rows: List[ParsedPasteRow] = field(default_factory=list)
    warnings: List[PasteWarning] = field(default_factory=list)
    total: int = 0      # non-blank lines seen

    @property
    def matched(self) -> int:
        return len(self.rows)

    @property
    def skipped(self) -> int:
        return self.total - self.matched

    def summary(self) -> str:
        return f"{self.matched} of {self.total} rows matched"


def parse_count(text: str) -> Tuple[int, bool]:
    """Parse *text* as a non-negative count.

    Returns ``(value, ok)``; anything that is not a base-10 integer gives
    ``(0, False)`` and negative integers are clamped to 0. Blank text is
    ``(0, True)``.
    """
    text = (text or "").strip()
    if not text:
        return 0, True
    try:
        value = int(text)
    except ValueError:
        return 0, False
    if value < 0:
        return 0, False
    return value, True


def _normalize(name: str) -> str:
    return " ".join(name.split()).casefold()


def make_student_resolver(students: Iterable[Student]) -> StudentResolver:
    """Build a resolver trying id, then full name, then "last first"."""
    by_id: Dict[str, Student] = {}
    by_name: Dict[str, Student] = {}
    by_reversed: Dict[str, Student] = {}
    for s in students:
        by_id.setdefault(s.student_id.strip(), s)
        by_name.setdefault(_normalize(s.full_name), s)
        by_reversed.setdefault(_normalize(f"{s.last_name} {s.first_name}"), s)

    def resolve(token: str) -> Optional[Student]:
        token = token.strip()
        if not token:
            return None
        if token in by_id:
            return by_id[token]
        key = _normalize(token)
        return by_name.get(key) or by_reversed.get(key)

    return resolve


def parse_paste(
    raw_text: str,
    subjects: Sequence[Subject],
    resolve_student: StudentResolver,
) -> PasteImportResult:
    """Parse *raw_text* into rows; never raises."""
    result = PasteImportResult()
    expected = 3 * len(subjects)

    for line_number, line in enumerate((raw_text or "").splitlines(), start=1):
        if not line.strip():
            continue
        result.total += 1
        cells = [c.strip() for c in line.split("\t")]
        token = cells[0]
        if len(cells) < 2:
            result.warnings.append(PasteWarning(
                line_number, token, f"No values for '{token}'; row skipped"))
            continue

        try:
            student = resolve_student(token)
        except Exception:
            logger.exception("Paste line %d: resolver failed for %r", line_number, token)
            student = None
        if student is None:
            logger.info("Paste line %d: no student matches %r, skipped", line_number, token)
            result.warnings.append(PasteWarning(
                line_number, token, f"No student matches '{token}'; row skipped"))
            continue

        values = cells[1:]
        if len(values) < expected:
            result.warnings.append(PasteWarning(
                line_number, token,
                f"Row has {len(values)} of {expected} values; missing values set to 0"))
        elif len(values) > expected:
            result.warnings.append(PasteWarning(
                line_number, token,
                f"Ignored {len(values) - expected} extra column(s)"))

        row = ParsedPasteRow(line_number=line_number, student_id=student.student_id)
        for si, subject in enumerate(subjects):
            sr = SubjectResult(subject_id=subject.subject_id)
            for fi, which in enumerate(FIELD_ORDER):
                col = 3 * si + fi
                raw = values[col] if col < len(values) else ""
                value, ok = parse_count(raw)
                if not ok:
                    result.warnings.append(PasteWarning(
                        line_number, token,
                        f"Invalid value '{raw}' for {subject.name} "
                        f"({which.value}); set to 0"))
                sr.set(which, value)
            row.results[subject.subject_id] = sr
        result.rows.append(row)

    if result.skipped:
        logger.info("Paste import: %s", result.summary())
    return result
