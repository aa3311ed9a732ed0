import logging
from typing import Any, List, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from examroom.config import settings
from examroom.errors import ConflictError, ValidationError
from examroom.models import Exam, Question, QuestionType, Submission
from examroom.timing import TimeWindow, classify_window, parse_schedule, utcnow
from examroom.utils import sanitize_question_text

logger = logging.getLogger(__name__)

EXAM_DURATION_MAX_MINUTES = 600
ROOM_NUMBER_MAX_LENGTH = 64


def _validate_question(position: int, raw: Union[Question, dict]) -> Question:
    label = f"Question {position + 1}"
    try:
        question = raw if isinstance(raw, Question) else Question.model_validate(raw)
    except PydanticValidationError:
        if not isinstance(raw, dict) or raw.get("type") not in {t.value for t in QuestionType}:
            raise ValidationError(
                f"{label}: Invalid question type. Must be either 'objective' or 'subjective'"
            )
        raise ValidationError(f"{label}: Invalid question format")

    text = sanitize_question_text(question.text or "")
    if not text:
        raise ValidationError(f"{label}: Question text is required")

    if question.type == QuestionType.OBJECTIVE:
        options = [o.strip() for o in question.options]
        if not options or any(not o for o in options):
            raise ValidationError(f"{label}: Options are required for objective questions")
        if len(set(options)) != len(options):
            raise ValidationError(f"{label}: Options must be distinct")
        if not question.correct_answer:
            raise ValidationError(f"{label}: Correct answer is required for objective questions")
        correct = question.correct_answer.strip()
        if correct not in options:
            raise ValidationError(f"{label}: Correct answer must be one of the provided options")
        return Question(type=question.type, text=text, options=options, correct_answer=correct, image=question.image)

    # Subjective: reference answer falls back to the question text
    return Question(
        type=question.type,
        text=text,
        options=[],
        correct_answer=question.correct_answer or text,
        image=question.image,
    )


def create_exam(
    session: Session,
    room_number: str,
    date: str,
    time: str,
    duration_minutes: int,
    negative_marking: float,
    marks_per_correct: float,
    questions: Sequence[Union[Question, dict]],
) -> Exam:
    """Validate and store a new exam. Raises ValidationError or ConflictError."""
    room_number = (room_number or "").strip()
    if not room_number or len(room_number) > ROOM_NUMBER_MAX_LENGTH:
        raise ValidationError("Room number is required")
    try:
        starts_at = parse_schedule(date, time, settings.EXAM_TIMEZONE)
    except (TypeError, ValueError):
        raise ValidationError("Date must be YYYY-MM-DD and time HH:MM")
    if duration_minutes < 1 or duration_minutes > EXAM_DURATION_MAX_MINUTES:
        raise ValidationError(f"Duration must be between 1 and {EXAM_DURATION_MAX_MINUTES} minutes")
    if negative_marking < 0:
        raise ValidationError("Negative marking must be a non-negative number")
    if marks_per_correct <= 0:
        raise ValidationError("Marks per correct must be a positive number")
    if not questions:
        raise ValidationError("At least one question is required")

    validated = [_validate_question(i, q) for i, q in enumerate(questions)]

    exam = Exam(
        room_number=room_number,
        starts_at=starts_at,
        duration_minutes=duration_minutes,
        negative_marking=negative_marking,
        marks_per_correct=marks_per_correct,
        questions=[q.model_dump(mode="json") for q in validated],
    )
    session.add(exam)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("Test with this room number already exists!")
    session.refresh(exam)
    logger.info("Created exam for room %s starting %s (%d questions)", room_number, starts_at, len(validated))
    return exam


def get_exam(session: Session, room_number: str) -> Optional[Exam]:
    return session.exec(select(Exam).where(Exam.room_number == room_number)).first()


def list_exams(session: Session) -> List[Exam]:
    return session.exec(select(Exam).order_by(Exam.starts_at.desc())).all()


def delete_exam(session: Session, room_number: str) -> bool:
    """Delete an exam and every submission made in its room."""
    exam = get_exam(session, room_number)
    if not exam:
        return False
    for submission in session.exec(select(Submission).where(Submission.room_number == room_number)).all():
        session.delete(submission)
    session.delete(exam)
    session.commit()
    logger.info("Deleted exam for room %s", room_number)
    return True


def window_for(exam: Exam, now=None) -> TimeWindow:
    """Classify ``now`` (default: current UTC time) against the exam's schedule."""
    return classify_window(
        exam.starts_at,
        exam.duration_minutes,
        settings.GRACE_PERIOD_MINUTES,
        now or utcnow(),
    )


def public_exam_view(exam: Exam) -> dict[str, Any]:
    """Exam definition as candidates see it: no correct or reference answers."""
    return {
        "roomNumber": exam.room_number,
        "startsAt": exam.starts_at.isoformat(),
        "durationMinutes": exam.duration_minutes,
        "gracePeriodMinutes": settings.GRACE_PERIOD_MINUTES,
        "marksPerCorrect": exam.marks_per_correct,
        "negativeMarking": exam.negative_marking,
        "questions": [
            q.model_dump(mode="json", by_alias=True, exclude={"correct_answer"})
            for q in exam.question_list()
        ],
    }


def admin_exam_view(exam: Exam) -> dict[str, Any]:
    view = public_exam_view(exam)
    view["questions"] = [q.model_dump(mode="json", by_alias=True) for q in exam.question_list()]
    view["correctAnswers"] = {
        str(i): q.correct_answer for i, q in enumerate(exam.question_list())
    }
    return view
