"""Utility functions for sanitization and answer-map normalisation."""

from typing import Mapping, Optional

import bleach

from examroom.errors import ValidationError


def sanitize_question_text(text: str) -> str:
    """Sanitize question text to prevent XSS attacks.

    Allows basic formatting tags but removes script/dangerous content.
    """
    allowed_tags = ['b', 'i', 'u', 'em', 'strong', 'p', 'br', 'code', 'pre', 'ul', 'ol', 'li', 'sub', 'sup']
    sanitized = bleach.clean(text, tags=allowed_tags, attributes={}, strip=True)
    return sanitized.strip()


def sanitize_answer_text(text: Optional[str]) -> Optional[str]:
    """Strip all markup from a candidate's free-text answer.

    Whitespace is preserved so that "was anything written" is judged on the
    text the candidate actually typed.
    """
    if text is None:
        return None
    return bleach.clean(str(text), tags=[], strip=True)


def normalize_answer_map(
    answers: Mapping[str, Optional[str]], question_count: int
) -> dict[int, Optional[str]]:
    """Return an answer map with every index in ``range(question_count)``.

    Keys arrive as strings from JSON. Missing indices become ``None``; keys
    that are not indices of the exam are rejected.
    """
    normalized: dict[int, Optional[str]] = {i: None for i in range(question_count)}
    for key, value in answers.items():
        try:
            index = int(key)
        except (TypeError, ValueError):
            raise ValidationError(f"Answer key {key!r} is not a question index")
        if index < 0 or index >= question_count:
            raise ValidationError(f"Answer key {index} is outside the exam's {question_count} questions")
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"Answer for question {index + 1} must be text or null")
        normalized[index] = value
    return normalized
