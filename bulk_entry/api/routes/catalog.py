from fastapi import APIRouter, HTTPException
from typing import List
import logging

from bulk_entry.api import storage
from bulk_entry.api.schemas import ExamSessionIn, ExamTypeIn, StudentIn, SubjectIn, SubjectOut

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/exam-types", response_model=List[ExamTypeIn])
def get_exam_types():
    return storage.load_catalog()["exam_types"]


@router.post("/exam-types", response_model=ExamTypeIn)
def post_exam_type(exam_type: ExamTypeIn):
    logger.info("POST /exam-types — id: %s, penalty_divisor: %s", exam_type.id, exam_type.penalty_divisor)
    catalog = storage.load_catalog()
    others = [et for et in catalog["exam_types"] if et["id"] != exam_type.id]
    catalog["exam_types"] = others + [exam_type.model_dump()]
    storage.save_catalog(catalog)
    return exam_type


@router.get("/exam-types/{exam_type_id}/subjects", response_model=List[SubjectOut])
def get_subjects(exam_type_id: str):
    if storage.find_exam_type(exam_type_id) is None:
        raise HTTPException(status_code=404, detail=f"Exam type not found: {exam_type_id}")
    return storage.subjects_for(exam_type_id)


@router.post("/exam-types/{exam_type_id}/subjects", response_model=List[SubjectOut])
def post_subjects(exam_type_id: str, subjects: List[SubjectIn]):
    logger.info("POST /exam-types/%s/subjects — %d subjects", exam_type_id, len(subjects))
    if storage.find_exam_type(exam_type_id) is None:
        raise HTTPException(status_code=404, detail=f"Exam type not found: {exam_type_id}")
    ids = [s.id for s in subjects]
    if len(set(ids)) != len(ids):
        raise HTTPException(status_code=400, detail="Duplicate subject id")
    catalog = storage.load_catalog()
    kept = [s for s in catalog["subjects"] if s["exam_type_id"] != exam_type_id]
    catalog["subjects"] = kept + [
        {**s.model_dump(), "exam_type_id": exam_type_id} for s in subjects
    ]
    storage.save_catalog(catalog)
    return storage.subjects_for(exam_type_id)


@router.get("/sessions", response_model=List[ExamSessionIn])
def get_sessions():
    return storage.load_catalog()["sessions"]


@router.post("/sessions", response_model=ExamSessionIn)
def post_session(session: ExamSessionIn):
    logger.info("POST /sessions — id: %s, exam_type: %s", session.id, session.exam_type_id)
    if storage.find_exam_type(session.exam_type_id) is None:
        logger.warning("POST /sessions — unknown exam type: %s", session.exam_type_id)
        raise HTTPException(status_code=400, detail=f"Unknown exam type: {session.exam_type_id}")
    catalog = storage.load_catalog()
    others = [s for s in catalog["sessions"] if s["id"] != session.id]
    catalog["sessions"] = others + [session.model_dump()]
    storage.save_catalog(catalog)
    return session


@router.get("/sessions/{session_id}", response_model=ExamSessionIn)
def get_session(session_id: str):
    session = storage.find_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return session


@router.get("/students", response_model=List[StudentIn])
def get_students():
    return storage.load_students()


@router.post("/students", response_model=List[StudentIn])
def post_students(students: List[StudentIn]):
    logger.info("POST /students — replacing roster with %d students", len(students))
    storage.save_students([s.model_dump() for s in students])
    return students
