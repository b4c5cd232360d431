from __future__ import annotations

import math
from collections.abc import Sequence

from emt_quiz.models import Question, ScoreSummary


def correct_answer_text(question: Question) -> str | None:
    option = question.correct_option
    return option.text if option else None


def is_correct(question: Question, answer: str | None) -> bool:
    """Exact, case-sensitive match against the correct option's text."""
    if answer is None:
        return False
    return answer == correct_answer_text(question)


def percentage(correct: int, total: int) -> int:
    if total == 0:
        return 0
    # Round half up, not Python's banker's rounding
    return math.floor(correct * 100 / total + 0.5)


def score_answers(questions: Sequence[Question], answers: Sequence[str | None]) -> ScoreSummary:
    """Score *answers* against *questions*; missing slots count as unanswered."""
    marks = tuple(
        is_correct(q, answers[i] if i < len(answers) else None)
        for i, q in enumerate(questions)
    )
    correct = sum(marks)
    return ScoreSummary(
        correct=correct,
        total=len(questions),
        percentage=percentage(correct, len(questions)),
        per_question=marks,
    )


def result_band(pct: int) -> str:
    if pct >= 75:
        return "good"
    if pct >= 50:
        return "fair"
    return "poor"
