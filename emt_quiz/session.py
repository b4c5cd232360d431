"""Quiz session state machine.

States are immutable tagged variants; every transition replaces
``QuizSession.state`` and bumps a token. A generation started under one
token is applied only if the token is unchanged when it completes, so a
Restart (or any other transition) made while a request is outstanding
discards its late response.

    not-started ──start──▶ in-progress ──submit──▶ completed
         ▲  │                   │                    │
         │  └──view_history──▶ history ◀─back─ reviewing
         └──────── restart ─────┴──── regenerate ────┘ (back to in-progress)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, ClassVar, Union

from emt_quiz.errors import InvalidTransitionError, QuizError, ValidationError
from emt_quiz.models import DIFFICULTIES, QUESTION_TYPES, Question, QuizConfig, QuizResult
from emt_quiz.question_generator import generate_questions
from emt_quiz.scoring import score_answers

if TYPE_CHECKING:
    from emt_quiz.history import HistoryStore
    from emt_quiz.knowledge import KnowledgeStore
    from emt_quiz.providers.base import LLMProvider

_log = logging.getLogger("emt_quiz.session")


@dataclass(frozen=True)
class NotStarted:
    name: ClassVar[str] = "not-started"
    error: str | None = None
    loading: bool = False


@dataclass(frozen=True)
class InProgress:
    name: ClassVar[str] = "in-progress"
    config: QuizConfig
    questions: tuple[Question, ...]
    answers: tuple[str | None, ...]

    @property
    def answered_count(self) -> int:
        return sum(1 for a in self.answers if a is not None)

    @property
    def can_submit(self) -> bool:
        return all(a is not None for a in self.answers)


@dataclass(frozen=True)
class Completed:
    name: ClassVar[str] = "completed"
    config: QuizConfig
    result: QuizResult
    regenerating: bool = False

    @property
    def questions(self) -> tuple[Question, ...]:
        return self.result.questions

    @property
    def answers(self) -> tuple[str | None, ...]:
        return self.result.user_answers


@dataclass(frozen=True)
class HistoryView:
    name: ClassVar[str] = "history"


@dataclass(frozen=True)
class Reviewing:
    name: ClassVar[str] = "reviewing"
    result: QuizResult


QuizState = Union[NotStarted, InProgress, Completed, HistoryView, Reviewing]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def make_config(question_type: str, difficulty: str, topics) -> QuizConfig:
    if not topics:
        raise ValidationError("Please select at least one topic to start the quiz.")
    if question_type not in QUESTION_TYPES:
        raise ValidationError("Please choose a question type.")
    if difficulty not in DIFFICULTIES:
        raise ValidationError("Please choose a difficulty.")
    return QuizConfig(difficulty=difficulty, question_type=question_type, topics=tuple(topics))


class QuizSession:
    def __init__(self, llm: LLMProvider, knowledge: KnowledgeStore, history: HistoryStore):
        self.llm = llm
        self.knowledge = knowledge
        self.history = history
        self.state: QuizState = NotStarted()
        self._token = 0

    def _advance(self, state: QuizState) -> int:
        self._token += 1
        self.state = state
        _log.debug("→ %s (token %d)", state.name, self._token)
        return self._token

    def _require(self, *allowed: type):
        if not isinstance(self.state, allowed):
            names = "/".join(cls.name for cls in allowed)
            raise InvalidTransitionError(
                f"Not allowed while {self.state.name} (requires {names})"
            )
        return self.state

    # ── Generation-backed transitions ───────────────────────────────────

    async def start(self, question_type: str, difficulty: str, count: int, topics) -> QuizState | None:
        """Generate a fresh quiz. Failures end in ``not-started`` with a message.

        Returns the new state, or None if a later transition superseded this
        one and its outcome was discarded.
        """
        self._require(NotStarted)
        token = self._advance(NotStarted(loading=True))
        try:
            config = make_config(question_type, difficulty, topics)
            questions = await generate_questions(
                self.llm, self.knowledge,
                config.question_type, config.difficulty, count, config.topics,
            )
        except QuizError as e:
            if token != self._token:
                _log.info("Discarding failed start superseded by a later transition")
                return None
            _log.warning("Start failed: %s", e)
            self._advance(NotStarted(error=f"Failed to start. {e}"))
            return self.state

        if token != self._token:
            _log.info("Discarding %d stale questions (session moved on)", len(questions))
            return None
        self._advance(InProgress(
            config=config,
            questions=tuple(questions),
            answers=(None,) * len(questions),
        ))
        return self.state

    async def regenerate(self) -> QuizState | None:
        """New questions for the same config, avoiding the ones just answered.

        Falls back to a full restart (with the error message) on failure.
        Returns None when the outcome was discarded, as for ``start``.
        """
        state = self._require(Completed)
        if not state.questions:
            return self.restart()
        token = self._advance(replace(state, regenerating=True))
        try:
            questions = await generate_questions(
                self.llm, self.knowledge,
                state.config.question_type, state.config.difficulty,
                len(state.questions), state.config.topics,
                previous_questions=state.questions,
            )
        except QuizError as e:
            if token != self._token:
                _log.info("Discarding failed regenerate superseded by a later transition")
                return None
            _log.warning("Regenerate failed: %s", e)
            self._advance(NotStarted(error=f"Failed to regenerate. {e}"))
            return self.state

        if token != self._token:
            _log.info("Discarding %d stale regenerated questions", len(questions))
            return None
        self._advance(InProgress(
            config=state.config,
            questions=tuple(questions),
            answers=(None,) * len(questions),
        ))
        return self.state

    # ── Synchronous transitions ─────────────────────────────────────────

    def answer(self, index: int, answer: str) -> QuizState:
        state = self._require(InProgress)
        if not 0 <= index < len(state.questions):
            raise ValidationError(f"No question at index {index}")
        answers = list(state.answers)
        answers[index] = answer
        # Same quiz, so the token is left alone
        self.state = replace(state, answers=tuple(answers))
        return self.state

    def submit(self) -> QuizResult:
        """Score whatever is answered, record it in history, and complete."""
        state = self._require(InProgress)
        summary = score_answers(state.questions, state.answers)
        result = QuizResult(
            id=int(datetime.now(timezone.utc).timestamp() * 1000),
            date=_now_iso(),
            score=summary.correct,
            total_questions=summary.total,
            percentage=summary.percentage,
            questions=state.questions,
            user_answers=state.answers,
            difficulty=state.config.difficulty,
            question_type=state.config.question_type,
            topics=state.config.topics,
        )
        self.history.append(result)
        self._advance(Completed(config=state.config, result=result))
        _log.info("Submitted: %d/%d (%d%%)", result.score, result.total_questions, result.percentage)
        return result

    def restart(self) -> QuizState:
        self._advance(NotStarted())
        return self.state

    def view_history(self) -> QuizState:
        self._require(NotStarted)
        self._advance(HistoryView())
        return self.state

    def leave_history(self) -> QuizState:
        self._require(HistoryView)
        return self.restart()

    def review(self, result_id: int) -> QuizState:
        self._require(HistoryView)
        result = self.history.get(result_id)
        if result is None:
            raise ValidationError(f"No quiz result with id {result_id}")
        self._advance(Reviewing(result=result))
        return self.state

    def back_to_history(self) -> QuizState:
        self._require(Reviewing)
        self._advance(HistoryView())
        return self.state
