import json
import os
from typing import Dict, List, Optional

DATA_DIR = os.environ.get("BULK_ENTRY_DATA_DIR", "./data")


def _ensure_data_dir():
    os.makedirs(os.path.join(DATA_DIR, "results"), exist_ok=True)


def _read_json(path: str, default):
    if not os.path.exists(path):
        return default
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _write_json(path: str, data) -> None:
    _ensure_data_dir()
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


# ── Catalog: exam types, subjects, sessions ──────────────────────────────────

def _catalog_path() -> str:
    return os.path.join(DATA_DIR, "catalog.json")


def load_catalog() -> dict:
    catalog = _read_json(_catalog_path(), {})
    catalog.setdefault("exam_types", [])
    catalog.setdefault("subjects", [])
    catalog.setdefault("sessions", [])
    return catalog


def save_catalog(catalog: dict) -> None:
    _write_json(_catalog_path(), catalog)


def find_exam_type(exam_type_id: str) -> Optional[dict]:
    return next((et for et in load_catalog()["exam_types"] if et["id"] == exam_type_id), None)


def find_session(session_id: str) -> Optional[dict]:
    return next((s for s in load_catalog()["sessions"] if s["id"] == session_id), None)


def subjects_for(exam_type_id: str) -> List[dict]:
    subjects = [s for s in load_catalog()["subjects"] if s["exam_type_id"] == exam_type_id]
    return sorted(subjects, key=lambda s: s.get("order_index", 0))


# ── Students ──────────────────────────────────────────────────────────────────

def load_students() -> List[dict]:
    return _read_json(os.path.join(DATA_DIR, "students.json"), [])


def save_students(students: List[dict]) -> None:
    _write_json(os.path.join(DATA_DIR, "students.json"), students)


# ── Results ───────────────────────────────────────────────────────────────────

def _results_path(session_id: str) -> str:
    return os.path.join(DATA_DIR, "results", f"{session_id}.json")


def load_results(session_id: str) -> Dict[str, Dict[str, dict]]:
    """Return { student_id: { subject_id: counts + net_score } }"""
    return _read_json(_results_path(session_id), {})


def save_results(session_id: str, results: Dict[str, Dict[str, dict]]) -> None:
    _write_json(_results_path(session_id), results)
