"""SQLModel models for proctored exam rooms."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from examroom.timing import utcnow


class QuestionType(str, Enum):
    OBJECTIVE = "objective"
    SUBJECTIVE = "subjective"


class Question(BaseModel):
    """One question of an exam. Its position in the exam is its stable index."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: QuestionType
    text: str
    options: list[str] = []
    # Objective: the designated option. Subjective: reference answer, never graded.
    correct_answer: Optional[str] = None
    image: Optional[str] = None

    @property
    def is_objective(self) -> bool:
        return self.type == QuestionType.OBJECTIVE


class Exam(SQLModel, table=True):
    """An exam definition bound to exactly one room."""

    __table_args__ = (UniqueConstraint("room_number", name="uq_exam_room_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    room_number: str = Field(index=True)
    # Naive UTC
    starts_at: datetime
    duration_minutes: int
    marks_per_correct: float = Field(default=1.0)
    negative_marking: float = Field(default=0.0)
    # Serialized Question objects, in order
    questions: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utcnow)

    def question_list(self) -> list[Question]:
        return [Question.model_validate(q) for q in self.questions]


class Submission(SQLModel, table=True):
    """The single, append-only result of one candidate in one room."""

    __table_args__ = (
        UniqueConstraint("room_number", "reg_no", name="uq_submission_room_reg_no"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    room_number: str = Field(index=True)
    student_name: str
    branch: str
    reg_no: str
    # Every question index as a string key; null means not attempted
    answers: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    correct_count: int = 0
    incorrect_count: int = 0
    subjective_attempted: int = 0
    marks_awarded: float = 0.0
    marks_deducted: float = 0.0
    final_score: float = 0.0

    violation: bool = Field(default=False)
    violation_count: int = Field(default=0)
    submitted_at: datetime = Field(default_factory=utcnow)
