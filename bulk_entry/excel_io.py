"""Excel template, import and export for exam results (openpyxl)."""
import io
import logging
import zipfile
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import openpyxl
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from bulk_entry.models import FIELD_ORDER, Field, Student, StudentResult, Subject, SubjectResult
from bulk_entry.paste_import import make_student_resolver, parse_count
from bulk_entry.scoring import compute_net, round_net
from bulk_entry.validation import validate_row

logger = logging.getLogger(__name__)

SHEET_TITLE = "Results"


class UnreadableWorkbook(ValueError):
    """The uploaded or selected file is not a workbook openpyxl can open."""


_FIELD_HEADERS = {Field.CORRECT: "Correct", Field.WRONG: "Wrong", Field.EMPTY: "Empty"}

# Header aliases, compared after _normalize_header (English and Turkish forms).
_ID_ALIASES = ("student id", "student no", "student number", "öğrenci no", "ogrenci no")
_NAME_ALIASES = ("student name", "name", "öğrenci adı", "ogrenci adi")
_FIELD_ALIASES: Dict[Field, Tuple[str, ...]] = {
    Field.CORRECT: ("correct", "c", "doğru", "dogru", "d"),
    Field.WRONG: ("wrong", "w", "yanlış", "yanlis", "y"),
    Field.EMPTY: ("empty", "e", "boş", "bos", "b"),
}


@dataclass
class ExcelImportError:
    row: int            # 1-based spreadsheet row
    message: str
    student_id: str = ""


@dataclass
class ExcelImportResult:
    results: Dict[str, List[SubjectResult]] = field(default_factory=dict)
    errors: List[ExcelImportError] = field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return sum(len(v) for v in self.results.values())


def _normalize_header(label) -> str:
    return " ".join(str(label or "").split()).casefold()


def _subject_headers(subject: Subject) -> List[str]:
    return [f"{subject.name} - {_FIELD_HEADERS[f]}" for f in FIELD_ORDER]


def _autosize(ws, headers: Sequence[str]) -> None:
    for i, header in enumerate(headers, start=1):
        ws.column_dimensions[get_column_letter(i)].width = max(len(header) + 2, 15)


def build_template(subjects: Sequence[Subject],
                   students: Optional[Sequence[Student]] = None) -> openpyxl.Workbook:
    """Empty entry sheet: one row per roster student, or a single example row."""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    headers = ["Student ID", "Student Name"]
    for subject in subjects:
        headers.extend(_subject_headers(subject))
    ws.append(headers)

    blanks = [None] * (3 * len(subjects))
    if students:
        for s in students:
            ws.append([s.student_id, s.full_name] + blanks)
    else:
        ws.append(["12345", "Sample Student"] + blanks)
    _autosize(ws, headers)
    return wb


def _map_columns(header_row: Sequence, subjects: Sequence[Subject]):
    id_col = name_col = None
    by_subject = {_normalize_header(s.name): s for s in subjects}
    subject_cols: Dict[str, Dict[Field, int]] = {}
    for col, cell in enumerate(header_row):
        label = _normalize_header(cell)
        if not label:
            continue
        if label in _ID_ALIASES and id_col is None:
            id_col = col
            continue
        if label in _NAME_ALIASES and name_col is None:
            name_col = col
            continue
        if "-" not in label:
            continue
        subject_label, suffix = (part.strip() for part in label.rsplit("-", 1))
        subject = by_subject.get(subject_label)
        if subject is None:
            continue
        for which, aliases in _FIELD_ALIASES.items():
            if suffix in aliases:
                subject_cols.setdefault(subject.subject_id, {})[which] = col
    return id_col, name_col, subject_cols


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def read_results(workbook: openpyxl.Workbook, subjects: Sequence[Subject],
                 students: Sequence[Student]) -> ExcelImportResult:
    """Read a filled template; bad rows are reported in ``errors`` and skipped."""
    result = ExcelImportResult()
    ws = workbook.active
    rows = list(ws.iter_rows(values_only=True))
    if not rows:
        result.errors.append(ExcelImportError(row=0, message="Worksheet is empty"))
        return result

    id_col, name_col, subject_cols = _map_columns(rows[0], subjects)
    if id_col is None and name_col is None:
        result.errors.append(ExcelImportError(
            row=1, message="No student ID or student name column found"))
        return result

    by_id = {s.student_id: s for s in students}
    resolve_name = make_student_resolver(students)
    subject_by_id = {s.subject_id: s for s in subjects}

    for row_index, row in enumerate(rows[1:], start=2):
        def cell(col):
            return _cell_text(row[col]) if col is not None and col < len(row) else ""

        token_id, token_name = cell(id_col), cell(name_col)
        if not token_id and not token_name:
            if any(_cell_text(v) for v in row):
                result.errors.append(ExcelImportError(
                    row=row_index, message="Missing student ID and name"))
            continue

        student = by_id.get(token_id) if token_id else None
        if student is None and token_name:
            student = resolve_name(token_name)
        if student is None:
            result.errors.append(ExcelImportError(
                row=row_index, student_id=token_id,
                message=f"Student not found: {token_id or token_name}"))
            continue

        for subject_id, cols in subject_cols.items():
            subject = subject_by_id[subject_id]
            texts = {which: cell(cols.get(which)) for which in FIELD_ORDER}
            if not any(texts.values()):
                continue
            sr = SubjectResult(subject_id=subject_id)
            for which, text in texts.items():
                sr.set(which, parse_count(text)[0])
            error = validate_row(subject, sr)
            if error:
                result.errors.append(ExcelImportError(
                    row=row_index, student_id=student.student_id,
                    message=f"{subject.name}: {error}"))
                continue
            result.results.setdefault(student.student_id, []).append(sr)

    logger.info("Excel import: %d result(s), %d error(s)",
                result.imported_count, len(result.errors))
    return result


def build_export(subjects: Sequence[Subject], snapshot: Sequence[StudentResult],
                 penalty_divisor: float, decimals: int = 2) -> openpyxl.Workbook:
    """Results sheet with counts and nets per subject plus the total net."""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    headers = ["Student ID", "Student Name"]
    for subject in subjects:
        headers.extend(f"{subject.name} - {label}" for label in ("C", "W", "E", "Net"))
    headers.append("Total Net")
    ws.append(headers)

    for student in snapshot:
        row = [student.student_id, student.student_name]
        total = 0.0
        for subject in subjects:
            sr = student.subjects.get(subject.subject_id)
            if sr is None:
                row.extend([0, 0, 0, 0])
                continue
            net = compute_net(sr.correct_count, sr.wrong_count, penalty_divisor)
            total += net
            row.extend([sr.correct_count, sr.wrong_count, sr.empty_count,
                        round_net(net, decimals)])
        row.append(round_net(total, decimals))
        ws.append(row)
    _autosize(ws, headers)
    return wb


def workbook_bytes(workbook: openpyxl.Workbook) -> bytes:
    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


def _load_workbook(source) -> openpyxl.Workbook:
    try:
        return openpyxl.load_workbook(source, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException, KeyError, ValueError) as exc:
        raise UnreadableWorkbook(f"Could not read Excel file: {exc}") from exc


def load_workbook_bytes(data: bytes) -> openpyxl.Workbook:
    return _load_workbook(io.BytesIO(data))


def load_workbook_file(path: str) -> openpyxl.Workbook:
    """Open *path*; a missing file raises OSError, a corrupt one UnreadableWorkbook."""
    return _load_workbook(path)
