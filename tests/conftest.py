import pytest
from fastapi.testclient import TestClient

from bulk_entry.api import storage
from bulk_entry.api.main import app
from bulk_entry.grid_store import ResultGridStore
from bulk_entry.models import Student, Subject


@pytest.fixture(autouse=True)
def tmp_data_dir(tmp_path, monkeypatch):
    """Redirect all storage reads/writes to a temporary directory."""
    monkeypatch.setattr(storage, 'DATA_DIR', str(tmp_path))
    return tmp_path


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def subjects():
    return [
        Subject(subject_id="tr", name="Turkish", question_count=40, exam_type_id="tyt", order_index=0),
        Subject(subject_id="math", name="Mathematics", question_count=40, exam_type_id="tyt", order_index=1),
        Subject(subject_id="sci", name="Science", question_count=20, exam_type_id="tyt", order_index=2),
    ]


@pytest.fixture()
def students():
    return [
        Student(student_id="101", first_name="Ayse", last_name="Yilmaz"),
        Student(student_id="102", first_name="Mehmet", last_name="Kaya"),
        Student(student_id="103", first_name="Zeynep", last_name="Demir"),
    ]


@pytest.fixture()
def store(subjects, students):
    return ResultGridStore(subjects, students, penalty_divisor=4)


@pytest.fixture()
def seeded_catalog(client):
    """Exam type 'tyt' with two subjects, one session and a two-student roster."""
    client.post("/api/exam-types", json={"id": "tyt", "name": "TYT", "penalty_divisor": 4})
    client.post("/api/exam-types/tyt/subjects", json=[
        {"id": "tr", "name": "Turkish", "question_count": 40, "order_index": 0},
        {"id": "math", "name": "Mathematics", "question_count": 40, "order_index": 1},
    ])
    client.post("/api/sessions", json={
        "id": "s1", "exam_type_id": "tyt", "name": "Mock 1", "exam_date": "2026-03-01",
    })
    client.post("/api/students", json=[
        {"student_id": "101", "first_name": "Ayse", "last_name": "Yilmaz"},
        {"student_id": "102", "first_name": "Mehmet", "last_name": "Kaya"},
    ])
    return "s1"
