"""Shared FastAPI dependencies for database access and administrator checks."""

from fastapi import Depends, HTTPException, Request
from sqlmodel import Session

from examroom.config import settings
from examroom.database import get_session
from examroom.models import Exam
from examroom.services import exam_service


def is_admin(request: Request) -> bool:
    """Return True when the session cookie belongs to the logged-in administrator."""
    return request.session.get("admin") == settings.ADMIN_USERNAME


def require_admin(request: Request) -> str:
    """Ensure the administrator is logged in; otherwise reject with 401."""
    if not is_admin(request):
        raise HTTPException(status_code=401, detail="Access denied. Administrator login required.")
    return request.session["admin"]


def get_exam_or_404(room: str, session: Session = Depends(get_session)) -> Exam:
    exam = exam_service.get_exam(session, room)
    if not exam:
        raise HTTPException(status_code=404, detail="Test not found")
    return exam
