"""Data persistence for the desktop app: project config, roster and results."""
import csv
import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from bulk_entry.models import (
    DEFAULT_PENALTY_DIVISOR,
    EntrySettings,
    ExamSession,
    ExamType,
    Student,
    Subject,
    SubjectResult,
)
from bulk_entry.scoring import check_penalty_divisor, compute_net

logger = logging.getLogger("bulk_entry")


# ── App-level session config (persists which project dir was last opened) ─────

_APP_DIR = os.path.dirname(os.path.abspath(__file__))
_APP_DATA_DIR = os.path.join(os.path.dirname(_APP_DIR), "data")
SESSION_CONFIG_PATH = os.path.join(_APP_DATA_DIR, "session_config.json")

# ── Project-dir-derived paths (set via set_project_dir) ──────────────────────

_active_project_dir: Optional[str] = None
DATA_DIR: str = ""
RESULTS_DIR: str = ""
EXPORT_DIR: str = ""


def set_project_dir(project_dir: str) -> None:
    """Configure all data paths to use *project_dir* as the root."""
    global _active_project_dir, DATA_DIR, RESULTS_DIR, EXPORT_DIR
    _active_project_dir = os.path.abspath(project_dir)
    DATA_DIR = os.path.join(_active_project_dir, "data")
    RESULTS_DIR = os.path.join(DATA_DIR, "results")
    EXPORT_DIR = os.path.join(_active_project_dir, "export")


def _require_project_dir(fn_name: str) -> None:
    """Raise RuntimeError if no project directory has been configured."""
    if not _active_project_dir:
        raise RuntimeError(
            f"data_store.{fn_name}() called before set_project_dir(). "
            "Open a project first."
        )


def ensure_data_dirs():
    _require_project_dir("ensure_data_dirs")
    os.makedirs(DATA_DIR, exist_ok=True)
    os.makedirs(RESULTS_DIR, exist_ok=True)
    os.makedirs(EXPORT_DIR, exist_ok=True)


# ── Debug logging ─────────────────────────────────────────────────────────────

def set_debug(enabled: bool) -> None:
    logger.setLevel(logging.DEBUG if enabled else logging.INFO)


def dbg(msg: str) -> None:
    logger.debug(msg)


# ── Session config ────────────────────────────────────────────────────────────

def load_session_config() -> Optional[dict]:
    if not os.path.exists(SESSION_CONFIG_PATH):
        return None
    with open(SESSION_CONFIG_PATH, "r", encoding="utf-8") as f:
        return json.load(f)


def save_session_config(project_dir: str):
    os.makedirs(_APP_DATA_DIR, exist_ok=True)
    config = {"project_dir": os.path.abspath(project_dir)}
    with open(SESSION_CONFIG_PATH, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2)


# ── Project config.json (exam catalog + entry settings) ──────────────────────

def load_project_config(project_dir: str) -> dict:
    """Read *project_dir*/config.json and return the raw dict."""
    path = os.path.join(project_dir, "config.json")
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_exam_types_from_config(config_data: dict) -> List[ExamType]:
    """Build the exam types; a missing divisor falls back to 4, a bad one raises."""
    exam_types = []
    for et in config_data.get("exam_types", []):
        raw = et.get("penalty_divisor")
        divisor = DEFAULT_PENALTY_DIVISOR if raw is None else check_penalty_divisor(float(raw))
        exam_types.append(ExamType(
            exam_type_id=str(et["id"]),
            name=et.get("name", str(et["id"])),
            penalty_divisor=divisor,
        ))
    return exam_types


def load_subjects_from_config(config_data: dict, exam_type_id: str) -> List[Subject]:
    """Return the subjects of *exam_type_id* ordered by ``order_index``."""
    subjects = [
        Subject(
            subject_id=str(s["id"]),
            name=s["name"],
            question_count=int(s["question_count"]),
            exam_type_id=str(s["exam_type_id"]),
            order_index=int(s.get("order_index", i)),
        )
        for i, s in enumerate(config_data.get("subjects", []))
        if str(s.get("exam_type_id")) == exam_type_id
    ]
    return sorted(subjects, key=lambda s: s.order_index)


def load_sessions_from_config(config_data: dict) -> List[ExamSession]:
    return [
        ExamSession(
            session_id=str(s["id"]),
            exam_type_id=str(s["exam_type_id"]),
            name=s.get("name", str(s["id"])),
            exam_date=s.get("exam_date", ""),
        )
        for s in config_data.get("sessions", [])
    ]


def load_entry_settings_from_config(config_data: dict) -> EntrySettings:
    es = config_data.get("entry_settings", {})
    return EntrySettings(
        net_decimals=int(es.get("net_decimals", 2)),
        debug_mode=bool(es.get("debug_mode", False)),
    )


# ── Students CSV ──────────────────────────────────────────────────────────────

def load_students(csv_path: str) -> List[Student]:
    _CORE = {"student_id", "first_name", "last_name"}
    students = []
    with open(csv_path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for row in reader:
            extra = {k: str(v).strip() for k, v in row.items() if k not in _CORE}
            students.append(Student(
                student_id=str(row["student_id"]).strip(),
                first_name=str(row.get("first_name") or "").strip(),
                last_name=str(row.get("last_name") or "").strip(),
                extra_fields=extra,
            ))
    return students


# ── Project check (setup dialog) ──────────────────────────────────────────────

@dataclass
class ProjectSummary:
    exam_types: List[ExamType]
    sessions: List[ExamSession]
    subject_counts: Dict[str, int]      # exam type id -> number of subjects
    student_count: int


def inspect_project(project_dir: str) -> ProjectSummary:
    """Check that *project_dir* holds a usable project without opening it.

    Raises ValueError with a message suitable for the setup dialog.
    """
    if not os.path.isdir(project_dir):
        raise ValueError("Project directory does not exist.")
    for required in ("config.json", "students.csv"):
        if not os.path.isfile(os.path.join(project_dir, required)):
            raise ValueError(f"Missing '{required}' inside the project directory.")

    try:
        config = load_project_config(project_dir)
    except json.JSONDecodeError as exc:
        raise ValueError(f"config.json is not valid JSON: {exc}") from exc
    if not isinstance(config, dict):
        raise ValueError("config.json must contain a JSON object.")
    for key in ("exam_types", "subjects", "sessions"):
        if not isinstance(config.get(key), list) or not config[key]:
            raise ValueError(f"config.json has no '{key}' entries.")

    try:
        exam_types = load_exam_types_from_config(config)
        sessions = load_sessions_from_config(config)
        subject_counts = {
            et.exam_type_id: len(load_subjects_from_config(config, et.exam_type_id))
            for et in exam_types
        }
    except KeyError as exc:
        raise ValueError(f"config.json entry is missing the {exc} field.") from exc

    for s in sessions:
        if s.exam_type_id not in subject_counts:
            raise ValueError(f"Session '{s.name}' uses unknown exam type '{s.exam_type_id}'.")
        if not subject_counts[s.exam_type_id]:
            raise ValueError(f"Exam type '{s.exam_type_id}' of session '{s.name}' has no subjects.")

    try:
        students = load_students(os.path.join(project_dir, "students.csv"))
    except KeyError as exc:
        raise ValueError("students.csv needs a 'student_id' column.") from exc
    dbg(f"Project {project_dir}: {len(sessions)} session(s), {len(students)} student(s)")
    return ProjectSummary(exam_types, sessions, subject_counts, len(students))


# ── Results ───────────────────────────────────────────────────────────────────

def _results_path(session_id: str) -> str:
    return os.path.join(RESULTS_DIR, f"{session_id}.json")


def _read_session_results(session_id: str) -> Dict[str, Dict[str, dict]]:
    """Return { student_id: { subject_id: counts + net_score } }"""
    path = _results_path(session_id)
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _write_session_results(session_id: str, data: Dict[str, Dict[str, dict]]) -> None:
    ensure_data_dirs()
    with open(_results_path(session_id), "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def load_results(session_id: str, student_id: Optional[str] = None) -> List[dict]:
    """Return a flat list of persisted records for *session_id*."""
    _require_project_dir("load_results")
    data = _read_session_results(session_id)
    records = []
    for sid, subjects in data.items():
        if student_id is not None and sid != student_id:
            continue
        for subject_id, counts in subjects.items():
            records.append({"student_id": sid, "subject_id": subject_id, **counts})
    return records


def save_student_results(session_id: str, student_id: str,
                         results: Sequence[SubjectResult],
                         penalty_divisor: float) -> None:
    """Upsert one student's subject results, storing the computed net."""
    _require_project_dir("save_student_results")
    data = _read_session_results(session_id)
    student_data = data.setdefault(student_id, {})
    for r in results:
        student_data[r.subject_id] = {
            "correct_count": r.correct_count,
            "wrong_count": r.wrong_count,
            "empty_count": r.empty_count,
            "net_score": compute_net(r.correct_count, r.wrong_count, penalty_divisor),
        }
    _write_session_results(session_id, data)
    dbg(f"Saved {len(results)} result(s) for student {student_id} in session {session_id}")


class LocalResultsGateway:
    """Results gateway backed by the project directory."""

    def __init__(self, penalty_divisor: float):
        self._penalty_divisor = check_penalty_divisor(penalty_divisor)

    def load_results(self, session_id: str, student_id: Optional[str] = None) -> List[dict]:
        return load_results(session_id, student_id)

    def save_results(self, session_id: str, student_id: str,
                     results: Sequence[SubjectResult]) -> None:
        save_student_results(session_id, student_id, results, self._penalty_divisor)
