"""Score computation for submitted answer maps."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

from examroom.models import Question


@dataclass(frozen=True)
class ScoreBreakdown:
    correct_count: int
    incorrect_count: int
    subjective_attempted: int
    marks_awarded: float
    marks_deducted: float
    final: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "correctCount": self.correct_count,
            "incorrectCount": self.incorrect_count,
            "subjectiveAttempted": self.subjective_attempted,
            "marksAwarded": self.marks_awarded,
            "marksDeducted": self.marks_deducted,
            "final": self.final,
        }

    def as_columns(self) -> dict[str, Any]:
        """Keyword arguments for the score columns of a Submission row."""
        data = asdict(self)
        data["final_score"] = data.pop("final")
        return data


def _attempted_text(value: Optional[str]) -> bool:
    return value is not None and str(value).strip() != ""


def score_answers(
    questions: Sequence[Question],
    answers: Mapping[int, Optional[str]],
    marks_per_correct: float,
    negative_marking: float,
    credit_subjective: bool = True,
) -> ScoreBreakdown:
    """Score ``answers`` (question index -> answer) against ``questions``.

    Objective answers are compared by exact equality with the correct option;
    a missing or null entry counts as not attempted. Subjective answers are
    never graded: any non-empty text earns ``marks_per_correct`` when
    ``credit_subjective`` is set. The final score is floored at zero and
    rounded to two decimals so fractional negative marking (e.g. 1/3) stays
    readable.
    """
    correct = incorrect = subjective = 0

    for index, question in enumerate(questions):
        given = answers.get(index)
        if question.is_objective:
            if given is None:
                continue
            if given == question.correct_answer:
                correct += 1
            else:
                incorrect += 1
        elif _attempted_text(given):
            subjective += 1

    credited = subjective if credit_subjective else 0
    awarded = (correct + credited) * marks_per_correct
    deducted = incorrect * negative_marking
    return ScoreBreakdown(
        correct_count=correct,
        incorrect_count=incorrect,
        subjective_attempted=subjective,
        marks_awarded=round(awarded, 2),
        marks_deducted=round(deducted, 2),
        final=round(max(0.0, awarded - deducted), 2),
    )


def rank_submissions(results: Iterable[dict]) -> list[dict]:
    """Order response rows by final score, best first; ties keep submission order."""
    return sorted(results, key=lambda row: row["score"]["final"], reverse=True)
