from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
from typing import List
import logging

from bulk_entry import excel_io
from bulk_entry.api import storage
from bulk_entry.api.routes.results import session_context, upsert_student_results
from bulk_entry.api.schemas import ExcelImportOut, SubjectResultIn
from bulk_entry.models import Student, StudentResult, Subject, SubjectResult
from bulk_entry.scoring import total_net

logger = logging.getLogger(__name__)

router = APIRouter()

_XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _xlsx_response(data: bytes, filename: str) -> StreamingResponse:
    return StreamingResponse(
        iter([data]),
        media_type=_XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


def _roster() -> List[Student]:
    return [Student(**s) for s in storage.load_students()]


def build_snapshot(results: dict, students: List[Student],
                   penalty_divisor: float) -> List[StudentResult]:
    """Turn stored results into roster-ordered StudentResults."""
    names = {s.student_id: s.full_name for s in students}
    order = {s.student_id: i for i, s in enumerate(students)}
    snapshot = []
    for sid in sorted(results, key=lambda k: (order.get(k, len(order)), k)):
        subjects = {
            subject_id: SubjectResult(
                subject_id=subject_id,
                correct_count=counts["correct_count"],
                wrong_count=counts["wrong_count"],
                empty_count=counts["empty_count"],
            )
            for subject_id, counts in results[sid].items()
        }
        snapshot.append(StudentResult(
            student_id=sid,
            student_name=names.get(sid, sid),
            subjects=subjects,
            total_net=total_net(subjects.values(), penalty_divisor),
        ))
    return snapshot


@router.get("/exam-types/{exam_type_id}/template/xlsx")
def get_template(exam_type_id: str, include_students: bool = True):
    if storage.find_exam_type(exam_type_id) is None:
        raise HTTPException(status_code=404, detail=f"Exam type not found: {exam_type_id}")
    subjects = [
        Subject(subject_id=s["id"], name=s["name"], question_count=s["question_count"],
                exam_type_id=exam_type_id, order_index=s.get("order_index", 0))
        for s in storage.subjects_for(exam_type_id)
    ]
    wb = excel_io.build_template(subjects, _roster() if include_students else None)
    return _xlsx_response(excel_io.workbook_bytes(wb), f"{exam_type_id}_template.xlsx")


@router.get("/sessions/{session_id}/export/xlsx")
def export_xlsx(session_id: str):
    logger.info("GET /sessions/%s/export/xlsx", session_id)
    _, exam_type, subjects = session_context(session_id)
    snapshot = build_snapshot(storage.load_results(session_id), _roster(),
                              exam_type.penalty_divisor)
    wb = excel_io.build_export(subjects, snapshot, exam_type.penalty_divisor)
    return _xlsx_response(excel_io.workbook_bytes(wb), f"{session_id}_results.xlsx")


@router.post("/sessions/{session_id}/import/xlsx", response_model=ExcelImportOut)
async def import_xlsx(session_id: str, file: UploadFile = File(...)):
    logger.info("POST /sessions/%s/import/xlsx — file: %s", session_id, file.filename)
    _, exam_type, subjects = session_context(session_id)
    data = await file.read()
    try:
        wb = excel_io.load_workbook_bytes(data)
    except excel_io.UnreadableWorkbook as e:
        logger.error("POST /sessions/%s/import/xlsx — unreadable workbook: %s", session_id, e)
        raise HTTPException(status_code=400, detail=str(e))

    parsed = excel_io.read_results(wb, subjects, _roster())
    results = storage.load_results(session_id)
    for student_id, rows in parsed.results.items():
        upsert_student_results(results, student_id,
                               [SubjectResultIn(**r.to_dict()) for r in rows],
                               exam_type.penalty_divisor)
    if parsed.results:
        storage.save_results(session_id, results)
    logger.info("POST /sessions/%s/import/xlsx — imported: %d, errors: %d",
                session_id, parsed.imported_count, len(parsed.errors))
    return {
        "imported_count": parsed.imported_count,
        "failed_count": len(parsed.errors),
        "errors": [vars(e) for e in parsed.errors],
    }
