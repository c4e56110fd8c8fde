from fastapi import APIRouter, HTTPException
from typing import Dict, List, Optional, Tuple
import logging
import statistics

from bulk_entry.api import storage
from bulk_entry.api.schemas import (
    BatchResultsIn,
    BatchResultsOut,
    ResultRecord,
    SessionStatistics,
    SubjectResultIn,
)
from bulk_entry.models import ExamType, Subject, SubjectResult
from bulk_entry.scoring import compute_net, round_net
from bulk_entry.validation import validate_row

logger = logging.getLogger(__name__)

router = APIRouter()


def session_context(session_id: str) -> Tuple[dict, ExamType, List[Subject]]:
    """Return (session, exam type, ordered subjects) or raise 404."""
    session = storage.find_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    et = storage.find_exam_type(session["exam_type_id"])
    if et is None:
        raise HTTPException(status_code=404, detail=f"Exam type not found: {session['exam_type_id']}")
    exam_type = ExamType(exam_type_id=et["id"], name=et["name"],
                         penalty_divisor=et.get("penalty_divisor", 4.0))
    subjects = [
        Subject(subject_id=s["id"], name=s["name"], question_count=s["question_count"],
                exam_type_id=s["exam_type_id"], order_index=s.get("order_index", 0))
        for s in storage.subjects_for(et["id"])
    ]
    return session, exam_type, subjects


def _check_student_rows(rows: List[SubjectResultIn], subjects: List[Subject]) -> Optional[str]:
    """Return the first problem with *rows*, or None when all are storable."""
    by_id = {s.subject_id: s for s in subjects}
    for row in rows:
        subject = by_id.get(row.subject_id)
        if subject is None:
            return f"Unknown subject: {row.subject_id}"
        error = validate_row(subject, SubjectResult(**row.model_dump()))
        if error:
            return f"{subject.name}: {error}"
    return None


def upsert_student_results(results: Dict[str, Dict[str, dict]], student_id: str,
                           rows: List[SubjectResultIn], penalty_divisor: float) -> None:
    student_data = results.setdefault(student_id, {})
    for row in rows:
        student_data[row.subject_id] = {
            "correct_count": row.correct_count,
            "wrong_count": row.wrong_count,
            "empty_count": row.empty_count,
            "net_score": compute_net(row.correct_count, row.wrong_count, penalty_divisor),
        }


def build_statistics(session: dict, subjects: List[Subject],
                     results: Dict[str, Dict[str, dict]]) -> Optional[dict]:
    """Per-subject and overall net statistics, rounded to 2 decimals."""
    if not results:
        return None

    def r2(value: float) -> float:
        return round_net(value, 2)

    subject_stats = []
    for subject in subjects:
        rows = [subs[subject.subject_id] for subs in results.values()
                if subject.subject_id in subs]
        if not rows:
            subject_stats.append({
                "subject_id": subject.subject_id, "subject_name": subject.name,
                "question_count": subject.question_count,
                "avg_correct": 0.0, "avg_wrong": 0.0, "avg_empty": 0.0, "avg_net": 0.0,
                "highest_net": 0.0, "lowest_net": 0.0, "std_deviation": 0.0,
            })
            continue
        nets = [r["net_score"] for r in rows]
        subject_stats.append({
            "subject_id": subject.subject_id,
            "subject_name": subject.name,
            "question_count": subject.question_count,
            "avg_correct": r2(statistics.fmean(r["correct_count"] for r in rows)),
            "avg_wrong": r2(statistics.fmean(r["wrong_count"] for r in rows)),
            "avg_empty": r2(statistics.fmean(r["empty_count"] for r in rows)),
            "avg_net": r2(statistics.fmean(nets)),
            "highest_net": r2(max(nets)),
            "lowest_net": r2(min(nets)),
            "std_deviation": r2(statistics.pstdev(nets)),
        })

    totals = [sum(r["net_score"] for r in subs.values()) for subs in results.values()]
    return {
        "session_id": session["id"],
        "session_name": session["name"],
        "exam_type_id": session["exam_type_id"],
        "exam_date": session.get("exam_date"),
        "total_students": len(results),
        "subject_stats": subject_stats,
        "overall_stats": {
            "avg_total_net": r2(statistics.fmean(totals)),
            "highest_total_net": r2(max(totals)),
            "lowest_total_net": r2(min(totals)),
        },
    }


@router.get("/sessions/{session_id}/results", response_model=List[ResultRecord])
def get_results(session_id: str, student_id: Optional[str] = None):
    logger.info("GET /sessions/%s/results — student: %s", session_id, student_id)
    session_context(session_id)
    records = []
    for sid, subjects in storage.load_results(session_id).items():
        if student_id is not None and sid != student_id:
            continue
        for subject_id, counts in subjects.items():
            records.append({"student_id": sid, "subject_id": subject_id, **counts})
    logger.info("GET /sessions/%s/results — returned %d records", session_id, len(records))
    return records


@router.put("/sessions/{session_id}/results/{student_id}", response_model=List[ResultRecord])
def put_student_results(session_id: str, student_id: str, rows: List[SubjectResultIn]):
    logger.info("PUT /sessions/%s/results/%s — %d subjects", session_id, student_id, len(rows))
    _, exam_type, subjects = session_context(session_id)
    problem = _check_student_rows(rows, subjects)
    if problem:
        logger.warning("PUT /sessions/%s/results/%s — rejected: %s", session_id, student_id, problem)
        raise HTTPException(status_code=400, detail=problem)
    results = storage.load_results(session_id)
    upsert_student_results(results, student_id, rows, exam_type.penalty_divisor)
    storage.save_results(session_id, results)
    return [
        {"student_id": student_id, "subject_id": subject_id, **counts}
        for subject_id, counts in results[student_id].items()
    ]


@router.post("/sessions/{session_id}/results/batch", response_model=BatchResultsOut)
def post_batch_results(session_id: str, batch: BatchResultsIn):
    logger.info("POST /sessions/%s/results/batch — %d students", session_id, len(batch.results))
    _, exam_type, subjects = session_context(session_id)
    results = storage.load_results(session_id)
    out = BatchResultsOut()
    for student in batch.results:
        problem = _check_student_rows(student.subjects, subjects)
        if problem:
            out.failed[student.student_id] = problem
            continue
        upsert_student_results(results, student.student_id, student.subjects, exam_type.penalty_divisor)
        out.saved.append(student.student_id)
    storage.save_results(session_id, results)
    logger.info("POST /sessions/%s/results/batch — saved: %d, failed: %d",
                session_id, len(out.saved), len(out.failed))
    return out


@router.delete("/sessions/{session_id}/results/{student_id}")
def delete_student_results(session_id: str, student_id: str):
    logger.info("DELETE /sessions/%s/results/%s", session_id, student_id)
    session_context(session_id)
    results = storage.load_results(session_id)
    removed = results.pop(student_id, None) is not None
    if removed:
        storage.save_results(session_id, results)
    return {"status": "ok", "removed": removed}


@router.get("/sessions/{session_id}/statistics", response_model=SessionStatistics)
def get_statistics(session_id: str):
    session, _, subjects = session_context(session_id)
    stats = build_statistics(session, subjects, storage.load_results(session_id))
    if stats is None:
        raise HTTPException(status_code=404, detail="No results for this session")
    return stats
