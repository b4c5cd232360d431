"""On-demand answer explanations with a loading/text/error slot per question."""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from emt_quiz.errors import ProviderError
from emt_quiz.models import ExplanationState, Question
from emt_quiz.prompts import EXPLANATION_PROMPT, format_knowledge_context, format_options
from emt_quiz.scoring import correct_answer_text

if TYPE_CHECKING:
    from emt_quiz.knowledge import KnowledgeStore
    from emt_quiz.providers.base import LLMProvider

_log = logging.getLogger("emt_quiz.explain")

FAILURE_MESSAGE = "Failed to load explanation. Please try again."


def build_explanation_prompt(
    knowledge: KnowledgeStore,
    question: Question,
    chosen_answer: str | None,
    topics,
) -> str:
    return EXPLANATION_PROMPT.format(
        knowledge_context=format_knowledge_context(knowledge.resolve(topics)),
        question_text=question.question_text,
        options=format_options(question),
        correct_answer=correct_answer_text(question) or "",
        user_answer=chosen_answer or "Not answered",
    )


class ExplanationService:
    """Explanation slots keyed by question id.

    In-flight requests are not deduplicated: two overlapping requests for
    the same id both run and whichever finishes last sets the slot. Callers
    keep the trigger disabled while a slot is loading. ``reset`` drops all
    slots and makes responses still in flight land nowhere.
    """

    def __init__(self, llm: LLMProvider, knowledge: KnowledgeStore):
        self.llm = llm
        self.knowledge = knowledge
        self._states: dict[int, ExplanationState] = {}
        self._epoch = 0

    def state(self, question_id: int) -> ExplanationState | None:
        return self._states.get(question_id)

    def is_loading(self, question_id: int) -> bool:
        s = self._states.get(question_id)
        return bool(s and s.loading)

    def reset(self) -> None:
        self._epoch += 1
        self._states = {}

    async def explain(self, question: Question, chosen_answer: str | None, topics) -> str:
        prompt = build_explanation_prompt(self.knowledge, question, chosen_answer, topics)
        try:
            text = await self.llm.generate(prompt)
        except Exception as e:
            raise ProviderError(f"Explanation request failed: {e}") from e
        if not text or not text.strip():
            raise ProviderError("The AI returned an empty explanation.")
        return text.strip()

    def _begin(self, question: Question) -> int:
        self._states[question.id] = ExplanationState(loading=True)
        return self._epoch

    async def request(self, question: Question, chosen_answer: str | None, topics) -> ExplanationState:
        """Run one explanation request, tracking it in the question's slot."""
        epoch = self._begin(question)
        return await self._finish(question, chosen_answer, topics, epoch)

    def schedule(self, question: Question, chosen_answer: str | None, topics) -> asyncio.Task:
        """Mark the slot loading now and run the request as a background task."""
        epoch = self._begin(question)
        return asyncio.create_task(self._finish(question, chosen_answer, topics, epoch))

    async def _finish(
        self, question: Question, chosen_answer: str | None, topics, epoch: int,
    ) -> ExplanationState:
        try:
            text = await self.explain(question, chosen_answer, topics)
        except ProviderError as e:
            _log.warning("Explanation for question %d failed: %s", question.id, e)
            result = ExplanationState(error=FAILURE_MESSAGE)
        else:
            result = ExplanationState(text=text)

        if epoch != self._epoch:
            _log.info("Dropping explanation for question %d (slots were reset)", question.id)
            return result
        self._states[question.id] = result
        return result
