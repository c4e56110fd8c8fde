import pytest

from bulk_entry.entry_session import (
    EntrySession,
    PersistenceError,
    SaveBlocked,
    SaveInProgress,
)
from bulk_entry.models import ExamSession, ExamType, Field


class FakeGateway:
    def __init__(self, records=None, fail_for=(), load_error=None):
        self.records = list(records or [])
        self.fail_for = set(fail_for)
        self.load_error = load_error
        self.saved = {}
        self.on_save = None

    def load_results(self, session_id, student_id=None):
        if self.load_error is not None:
            raise self.load_error
        return self.records

    def save_results(self, session_id, student_id, results):
        if self.on_save is not None:
            self.on_save()
        if student_id in self.fail_for:
            raise ConnectionError(f"backend rejected {student_id}")
        self.saved[student_id] = list(results)


EXAM_TYPE = ExamType(exam_type_id="tyt", name="TYT", penalty_divisor=4)
SESSION = ExamSession(session_id="s1", exam_type_id="tyt", name="Mock 1")


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def entry(subjects, students, gateway):
    return EntrySession(SESSION, EXAM_TYPE, subjects, students, gateway)


def test_session_must_match_exam_type(subjects, students, gateway):
    other = ExamSession(session_id="s2", exam_type_id="ayt", name="AYT")
    with pytest.raises(ValueError):
        EntrySession(other, EXAM_TYPE, subjects, students, gateway)


def test_open_hydrates(subjects, students):
    gw = FakeGateway(records=[
        {"student_id": "102", "subject_id": "math", "correct_count": 20,
         "wrong_count": 4, "empty_count": 16, "net_score": 19.0},
    ])
    entry = EntrySession(SESSION, EXAM_TYPE, subjects, students, gw)
    assert entry.open() == 1
    assert entry.store.total_net("102") == pytest.approx(19.0)


def test_open_failure_raises_persistence_error(subjects, students):
    gw = FakeGateway(load_error=OSError("disk gone"))
    entry = EntrySession(SESSION, EXAM_TYPE, subjects, students, gw)
    entry.store.set_cell("101", "tr", Field.CORRECT, "5")
    with pytest.raises(PersistenceError):
        entry.open()
    assert entry.store.snapshot() == []


def test_paste_applies_rows(entry):
    result = entry.paste("101\t30\t8\t2\t0\t0\t0\t0\t0\t0\nghost\t1\t1\t1")
    assert result.summary() == "1 of 2 rows matched"
    assert entry.store.total_net("101") == pytest.approx(28.0)


def test_save_blocked_by_errors(entry, gateway):
    entry.store.set_cell("101", "sci", Field.CORRECT, "30")
    with pytest.raises(SaveBlocked) as exc:
        entry.save_all()
    assert exc.value.error_count == 1
    assert gateway.saved == {}


def test_save_all_one_call_per_student(entry, gateway):
    entry.store.set_cell("101", "tr", Field.CORRECT, "10")
    entry.store.set_cell("103", "math", Field.WRONG, "4")
    report = entry.save_all()
    assert report.ok
    assert report.saved == ["101", "103"]
    assert set(gateway.saved) == {"101", "103"}
    assert gateway.saved["101"][0].correct_count == 10


def test_partial_failure_keeps_going(subjects, students):
    gw = FakeGateway(fail_for={"101"})
    entry = EntrySession(SESSION, EXAM_TYPE, subjects, students, gw)
    entry.store.set_cell("101", "tr", Field.CORRECT, "10")
    entry.store.set_cell("102", "tr", Field.CORRECT, "11")
    report = entry.save_all()
    assert not report.ok
    assert report.saved == ["102"]
    assert "backend rejected 101" in report.failed["101"]
    assert entry.store.get_cell("101", "tr").correct_count == 10
    assert not entry.is_saving


def test_save_is_not_reentrant(entry, gateway):
    entry.store.set_cell("101", "tr", Field.CORRECT, "10")
    seen = []

    def save_again():
        with pytest.raises(SaveInProgress):
            entry.save_all()
        seen.append(entry.is_saving)

    gateway.on_save = save_again
    assert entry.save_all().ok
    assert seen == [True]
    assert not entry.is_saving


def test_close_clears_store(entry):
    entry.store.set_cell("101", "tr", Field.CORRECT, "10")
    entry.close()
    assert entry.store.snapshot() == []


def test_pasting_names_only_keeps_existing_entries(entry):
    entry.store.set_cell("101", "math", Field.CORRECT, "20")
    entry.paste("101\nMehmet Kaya")
    assert entry.store.get_cell("101", "math").correct_count == 20
    assert entry.store.get_student("102") is None
