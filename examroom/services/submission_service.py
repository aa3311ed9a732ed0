import logging
from datetime import datetime
from typing import List, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from examroom.config import settings
from examroom.errors import ConflictError, TimingError
from examroom.identity import CandidateIdentity
from examroom.models import Exam, Submission
from examroom.scoring import ScoreBreakdown, rank_submissions, score_answers
from examroom.services.exam_service import window_for
from examroom.utils import normalize_answer_map, sanitize_answer_text

logger = logging.getLogger(__name__)


def has_submission(session: Session, room_number: str, reg_no: str) -> bool:
    existing = session.exec(
        select(Submission).where(
            Submission.room_number == room_number,
            Submission.reg_no == reg_no.strip(),
        )
    ).first()
    return existing is not None


def breakdown_of(submission: Submission) -> ScoreBreakdown:
    return ScoreBreakdown(
        correct_count=submission.correct_count,
        incorrect_count=submission.incorrect_count,
        subjective_attempted=submission.subjective_attempted,
        marks_awarded=submission.marks_awarded,
        marks_deducted=submission.marks_deducted,
        final=submission.final_score,
    )


def submit_answers(
    session: Session,
    exam: Exam,
    identity: CandidateIdentity,
    answers: Mapping[str, Optional[str]],
    violation: bool = False,
    violation_count: int = 0,
    now: Optional[datetime] = None,
) -> Submission:
    """Score and persist a candidate's only submission for ``exam``.

    The time window is checked here, not only at room entry: a submission
    arriving after the grace period is refused with TimingError. Uniqueness
    of (room, registration number) is left to the database constraint, so
    two concurrent requests cannot both insert; the loser gets ConflictError.
    """
    identity = identity.cleaned()

    window = window_for(exam, now)
    if not window.accepts_submissions:
        logger.warning(
            "Rejected submission for room %s by %s: window is %s",
            exam.room_number, identity.reg_no, window.classification.value,
        )
        raise TimingError(
            window.message(settings.EXAM_TIMEZONE),
            window.to_dict(settings.EXAM_TIMEZONE),
        )

    questions = exam.question_list()
    normalized = normalize_answer_map(answers, len(questions))
    for index, question in enumerate(questions):
        if not question.is_objective:
            normalized[index] = sanitize_answer_text(normalized[index])

    score = score_answers(
        questions,
        normalized,
        exam.marks_per_correct,
        exam.negative_marking,
        credit_subjective=settings.CREDIT_SUBJECTIVE_ATTEMPTS,
    )

    submission = Submission(
        room_number=exam.room_number,
        student_name=identity.name,
        branch=identity.branch,
        reg_no=identity.reg_no,
        answers={str(i): v for i, v in normalized.items()},
        violation=violation,
        violation_count=max(violation_count, 1 if violation else 0),
        **score.as_columns(),
    )
    session.add(submission)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.info("Duplicate submission for room %s by %s", exam.room_number, identity.reg_no)
        raise ConflictError("This registration number has already submitted the test.")
    session.refresh(submission)
    logger.info(
        "Stored submission for room %s by %s: final=%s violation=%s",
        exam.room_number, identity.reg_no, submission.final_score, submission.violation,
    )
    return submission


def list_submissions(session: Session, room_number: str) -> List[Submission]:
    return session.exec(
        select(Submission)
        .where(Submission.room_number == room_number)
        .order_by(Submission.submitted_at, Submission.id)
    ).all()


def responses_for(session: Session, exam: Exam) -> list[dict]:
    """Administrator view of every submission in the room, best score first."""
    questions = exam.question_list()
    rows = []
    for submission in list_submissions(session, exam.room_number):
        subjective = []
        for index, question in enumerate(questions):
            if question.is_objective:
                continue
            answer = submission.answers.get(str(index))
            subjective.append(
                {
                    "questionNumber": index + 1,
                    "questionText": question.text,
                    "answer": answer.strip() if answer and answer.strip() else "Did not attempt this question",
                }
            )
        rows.append(
            {
                "studentName": submission.student_name,
                "branch": submission.branch,
                "regNo": submission.reg_no,
                "answers": submission.answers,
                "subjectiveAnswers": subjective,
                "violation": submission.violation,
                "violationCount": submission.violation_count,
                "submittedAt": submission.submitted_at.isoformat(),
                "score": breakdown_of(submission).to_dict(),
            }
        )
    return rank_submissions(rows)
