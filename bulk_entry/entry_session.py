"""Load/save orchestration around one :class:`ResultGridStore`."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence

from bulk_entry.grid_store import ResultGridStore
from bulk_entry.models import ExamSession, ExamType, Student, Subject, SubjectResult
from bulk_entry.paste_import import PasteImportResult, make_student_resolver, parse_paste

logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """A load or save call to the results gateway failed."""


class SaveBlocked(RuntimeError):
    def __init__(self, error_count: int):
        super().__init__(f"Fix {error_count} invalid cell(s) before saving")
        self.error_count = error_count


class SaveInProgress(RuntimeError):
    pass


class ResultsGateway(Protocol):
    def load_results(self, session_id: str, student_id: Optional[str] = None) -> List[dict]:
        ...

    def save_results(self, session_id: str, student_id: str,
                     results: Sequence[SubjectResult]) -> None:
        ...


@dataclass
class SaveReport:
    saved: List[str] = field(default_factory=list)          # student ids
    failed: Dict[str, str] = field(default_factory=dict)    # student id -> message

    @property
    def ok(self) -> bool:
        return not self.failed


class EntrySession:
    def __init__(
        self,
        session: ExamSession,
        exam_type: ExamType,
        subjects: Sequence[Subject],
        students: Sequence[Student],
        gateway: ResultsGateway,
    ):
        if session.exam_type_id != exam_type.exam_type_id:
            raise ValueError(
                f"session {session.session_id!r} belongs to exam type "
                f"{session.exam_type_id!r}, not {exam_type.exam_type_id!r}"
            )
        self.session = session
        self.exam_type = exam_type
        self.store = ResultGridStore(subjects, students, exam_type.penalty_divisor)
        self._gateway = gateway
        self._resolve = make_student_resolver(students)
        self._saving = False

    @property
    def is_saving(self) -> bool:
        return self._saving

    def open(self) -> int:
        """Hydrate the store from persisted results; return the record count."""
        try:
            records = self._gateway.load_results(self.session.session_id)
        except (OSError, ValueError) as exc:
            self.store.clear()
            raise PersistenceError(
                f"Could not load results for {self.session.name}: {exc}") from exc
        loaded = self.store.hydrate(records)
        logger.info("Loaded %d result record(s) for session %s",
                    loaded, self.session.session_id)
        return loaded

    def paste(self, raw_text: str) -> PasteImportResult:
        result = parse_paste(raw_text, self.store.subjects, self._resolve)
        self.store.bulk_apply(result.rows)
        return result

    def save_all(self) -> SaveReport:
        """Save every student with data, one gateway call per student.

        A failure for one student is recorded in the report and does not stop
        the others; the store is left untouched either way.
        """
        if self.store.has_blocking_errors():
            raise SaveBlocked(self.store.error_count())
        if self._saving:
            raise SaveInProgress("A save is already running")

        report = SaveReport()
        self._saving = True
        try:
            for student_result in self.store.snapshot():
                sid = student_result.student_id
                try:
                    self._gateway.save_results(
                        self.session.session_id, sid,
                        list(student_result.subjects.values()))
                except Exception as exc:
                    logger.exception("Saving results for student %s failed", sid)
                    report.failed[sid] = str(exc)
                else:
                    report.saved.append(sid)
        finally:
            self._saving = False
        logger.info("Save finished: %d saved, %d failed",
                    len(report.saved), len(report.failed))
        return report

    def close(self) -> None:
        self.store.clear()
