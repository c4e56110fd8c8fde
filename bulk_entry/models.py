"""Data models for bulk exam-result entry."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class Field(str, Enum):
    """The three answer counts entered per subject, in entry order."""
    CORRECT = "correct"
    WRONG = "wrong"
    EMPTY = "empty"

    @property
    def short_label(self) -> str:
        return {Field.CORRECT: "C", Field.WRONG: "W", Field.EMPTY: "E"}[self]


FIELD_ORDER = (Field.CORRECT, Field.WRONG, Field.EMPTY)

DEFAULT_PENALTY_DIVISOR = 4.0


@dataclass
class Student:
    student_id: str
    first_name: str = ""
    last_name: str = ""
    extra_fields: Dict[str, str] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class Subject:
    subject_id: str
    name: str
    question_count: int
    exam_type_id: str = ""
    order_index: int = 0


@dataclass(frozen=True)
class ExamType:
    exam_type_id: str
    name: str
    penalty_divisor: float = DEFAULT_PENALTY_DIVISOR


@dataclass(frozen=True)
class ExamSession:
    session_id: str
    exam_type_id: str
    name: str
    exam_date: str = ""


@dataclass
class SubjectResult:
    subject_id: str
    correct_count: int = 0
    wrong_count: int = 0
    empty_count: int = 0

    def get(self, which: Field) -> int:
        if which is Field.CORRECT:
            return self.correct_count
        if which is Field.WRONG:
            return self.wrong_count
        return self.empty_count

    def set(self, which: Field, value: int) -> None:
        if which is Field.CORRECT:
            self.correct_count = value
        elif which is Field.WRONG:
            self.wrong_count = value
        else:
            self.empty_count = value

    def answered(self) -> int:
        return self.correct_count + self.wrong_count + self.empty_count

    def is_empty(self) -> bool:
        return self.answered() == 0

    def to_dict(self) -> dict:
        return {
            "subject_id": self.subject_id,
            "correct_count": self.correct_count,
            "wrong_count": self.wrong_count,
            "empty_count": self.empty_count,
        }


@dataclass
class StudentResult:
    student_id: str
    student_name: str
    subjects: Dict[str, SubjectResult] = field(default_factory=dict)
    total_net: float = 0.0

    def has_data(self) -> bool:
        return any(not r.is_empty() for r in self.subjects.values())


@dataclass(frozen=True)
class CellError:
    student_id: str
    subject_id: str
    field: Field
    message: str

    @property
    def key(self) -> tuple:
        return (self.student_id, self.subject_id, self.field)


@dataclass
class EntrySettings:
    net_decimals: int = 2           # nets are rounded to this many decimals for display
    debug_mode: bool = False        # log debug messages from the data store
