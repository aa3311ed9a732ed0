"""API endpoints for exam rooms: entry checks, exam delivery and submission."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlmodel import Session

from examroom.config import settings
from examroom.database import get_session
from examroom.deps import get_exam_or_404, require_admin
from examroom.errors import ConflictError, TimingError, ValidationError
from examroom.identity import CandidateIdentity
from examroom.models import Exam
from examroom.services import exam_service, submission_service

router = APIRouter()


# --- Request schemas (camelCase on the wire) ---


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckRegistrationIn(CamelModel):
    room: str
    reg_no: str = ""


class CandidateIn(CamelModel):
    name: str = ""
    branch: str = ""
    reg_no: str = ""


class SubmitTestIn(CamelModel):
    room: str
    candidate_identity: CandidateIn
    answers: dict[str, Optional[str]] = {}
    violation_flag: bool = False
    violation_count: int = 0


class CreateTestIn(CamelModel):
    room_number: str
    date: str
    time: str
    duration: int
    negative_marking: float
    marks_per_correct: float = 1.0
    questions: list[dict[str, Any]]


def _load_exam(session: Session, room: str) -> Exam:
    exam = exam_service.get_exam(session, room)
    if not exam:
        raise HTTPException(status_code=404, detail="Test not found")
    return exam


def _timing_response(error: TimingError) -> JSONResponse:
    return JSONResponse(
        status_code=403,
        content={"accepted": False, **error.details, "detail": error.message},
    )


# 1) ROOM ENTRY


@router.get("/verify-room/{room}")
def verify_room(exam: Exam = Depends(get_exam_or_404)):
    """Classify the current time against the room's schedule."""
    window = exam_service.window_for(exam)
    return window.to_dict(settings.EXAM_TIMEZONE)


@router.post("/check-registration")
def check_registration(payload: CheckRegistrationIn = Body(...), session: Session = Depends(get_session)):
    exam = _load_exam(session, payload.room)
    reg_no = payload.reg_no.strip()
    if not reg_no:
        raise HTTPException(status_code=422, detail="Registration number is required")

    window = exam_service.window_for(exam)
    if not window.accepts_submissions:
        return _timing_response(
            TimingError(window.message(settings.EXAM_TIMEZONE), window.to_dict(settings.EXAM_TIMEZONE))
        )

    return {"alreadyExists": submission_service.has_submission(session, exam.room_number, reg_no)}


@router.get("/get-test/{room}")
def get_test(exam: Exam = Depends(get_exam_or_404)):
    return exam_service.public_exam_view(exam)


# 2) SUBMISSION


@router.post("/submit-test")
def submit_test(payload: SubmitTestIn = Body(...), session: Session = Depends(get_session)):
    exam = _load_exam(session, payload.room)
    identity = CandidateIdentity(
        name=payload.candidate_identity.name,
        branch=payload.candidate_identity.branch,
        reg_no=payload.candidate_identity.reg_no,
    )
    try:
        submission = submission_service.submit_answers(
            session,
            exam,
            identity,
            payload.answers,
            violation=payload.violation_flag,
            violation_count=payload.violation_count,
        )
    except ConflictError as e:
        return JSONResponse(
            status_code=409,
            content={"accepted": False, "conflict": True, "detail": e.message},
        )
    except TimingError as e:
        return _timing_response(e)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)

    return {
        "accepted": True,
        "submittedAt": submission.submitted_at.isoformat(),
        "scoreBreakdown": submission_service.breakdown_of(submission).to_dict(),
    }


# 3) ADMINISTRATOR


@router.get("/get-test-responses/{room}")
def get_test_responses(
    room: str,
    session: Session = Depends(get_session),
    admin: str = Depends(require_admin),
):
    exam = exam_service.get_exam(session, room)
    if not exam:
        raise HTTPException(status_code=404, detail="Room number does not exist")
    return {
        "responses": submission_service.responses_for(session, exam),
        "hasSubjective": any(not q.is_objective for q in exam.question_list()),
        "testDetails": exam_service.admin_exam_view(exam),
    }


@router.post("/create-test", status_code=201)
def create_test(
    payload: CreateTestIn = Body(...),
    session: Session = Depends(get_session),
    admin: str = Depends(require_admin),
):
    try:
        exam = exam_service.create_exam(
            session,
            room_number=payload.room_number,
            date=payload.date,
            time=payload.time,
            duration_minutes=payload.duration,
            negative_marking=payload.negative_marking,
            marks_per_correct=payload.marks_per_correct,
            questions=payload.questions,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=e.message)
    return {"message": "Test created successfully!", "test": exam_service.admin_exam_view(exam)}


@router.get("/get-tests")
def get_tests(session: Session = Depends(get_session), admin: str = Depends(require_admin)):
    return {"tests": [exam_service.admin_exam_view(e) for e in exam_service.list_exams(session)]}


@router.delete("/delete-test/{room}")
def delete_test(room: str, session: Session = Depends(get_session), admin: str = Depends(require_admin)):
    if not exam_service.delete_exam(session, room):
        raise HTTPException(status_code=404, detail="Test not found!")
    return {"message": "Test deleted successfully!"}
