from pydantic import BaseModel, Field
from typing import Dict, List, Optional


class ExamTypeIn(BaseModel):
    id: str
    name: str
    penalty_divisor: float = Field(default=4.0, gt=0)


class SubjectIn(BaseModel):
    id: str
    name: str
    question_count: int = Field(gt=0)
    order_index: int = 0


class SubjectOut(SubjectIn):
    exam_type_id: str


class ExamSessionIn(BaseModel):
    id: str
    exam_type_id: str
    name: str
    exam_date: str = ""


class StudentIn(BaseModel):
    student_id: str
    first_name: str = ""
    last_name: str = ""


class SubjectResultIn(BaseModel):
    subject_id: str
    correct_count: int = Field(default=0, ge=0)
    wrong_count: int = Field(default=0, ge=0)
    empty_count: int = Field(default=0, ge=0)


class ResultRecord(SubjectResultIn):
    student_id: str
    net_score: float


class StudentResultsIn(BaseModel):
    student_id: str
    subjects: List[SubjectResultIn]


class BatchResultsIn(BaseModel):
    results: List[StudentResultsIn]


class BatchResultsOut(BaseModel):
    saved: List[str] = []
    failed: Dict[str, str] = {}


class SubjectStatistics(BaseModel):
    subject_id: str
    subject_name: str
    question_count: int
    avg_correct: float
    avg_wrong: float
    avg_empty: float
    avg_net: float
    highest_net: float
    lowest_net: float
    std_deviation: float


class OverallStatistics(BaseModel):
    avg_total_net: float
    highest_total_net: float
    lowest_total_net: float


class SessionStatistics(BaseModel):
    session_id: str
    session_name: str
    exam_type_id: str
    exam_date: Optional[str] = None
    total_students: int
    subject_stats: List[SubjectStatistics]
    overall_stats: OverallStatistics


class ExcelImportErrorOut(BaseModel):
    row: int
    message: str
    student_id: str = ""


class ExcelImportOut(BaseModel):
    imported_count: int
    failed_count: int
    errors: List[ExcelImportErrorOut]
