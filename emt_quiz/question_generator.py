"""Build generation requests, call the provider, and decode its questions."""
from __future__ import annotations

import json
import logging
import re
import time
from typing import TYPE_CHECKING

from emt_quiz.errors import ProviderError, ValidationError
from emt_quiz.models import DIFFICULTIES, QUESTION_TYPES, Question, QuestionOption
from emt_quiz.prompts import (
    DIFFICULTY_INSTRUCTION,
    EXCLUSION_DIRECTIVE,
    QUESTION_TYPE_INSTRUCTIONS,
    QUESTIONS_SCHEMA,
    QUIZ_PROMPT,
    RETRY_FEEDBACK,
    format_coverage,
    format_knowledge_context,
    format_previous_questions,
)

if TYPE_CHECKING:
    from emt_quiz.knowledge import KnowledgeStore
    from emt_quiz.providers.base import LLMProvider

_log = logging.getLogger("emt_quiz.qgen")

MAX_ATTEMPTS = 2


def _extract_json(text: str) -> dict | None:
    """Extract a JSON object from a completion, handling code fences.

    Strips ``<think>`` blocks first, then tries code-fenced JSON, then the
    whole text, then balanced ``{…}`` blocks, preferring the *last* one.
    """
    text = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL).strip()

    m = re.search(r"```(?:json)?\s*\n?({.*?})\s*\n?```", text, re.DOTALL)
    if m:
        try:
            return json.loads(m.group(1))
        except json.JSONDecodeError:
            pass

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, dict):
        return parsed

    for candidate in reversed(_find_json_objects(text)):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue

    return None


def _find_json_objects(text: str) -> list[str]:
    """Find balanced top-level ``{…}`` substrings in *text*."""
    results: list[str] = []
    i = 0
    while i < len(text):
        if text[i] == "{":
            depth = 0
            in_str = False
            escape = False
            start = i
            for j in range(i, len(text)):
                ch = text[j]
                if escape:
                    escape = False
                    continue
                if ch == "\\":
                    escape = True
                    continue
                if ch == '"':
                    in_str = not in_str
                    continue
                if in_str:
                    continue
                if ch == "{":
                    depth += 1
                elif ch == "}":
                    depth -= 1
                    if depth == 0:
                        results.append(text[start : j + 1])
                        i = j + 1
                        break
            else:
                i += 1
        else:
            i += 1
    return results


def _check_request(question_type: str, difficulty: str, count: int, topics) -> None:
    if not topics:
        raise ValidationError("Please select at least one topic to start the quiz.")
    if question_type not in QUESTION_TYPES:
        raise ValidationError(f"Unknown question type: {question_type!r}")
    if difficulty not in DIFFICULTIES:
        raise ValidationError(f"Unknown difficulty: {difficulty!r}")
    if not isinstance(count, int) or isinstance(count, bool) or count < 1:
        raise ValidationError(f"Question count must be a positive integer (got {count!r})")


def build_generation_prompt(
    knowledge: KnowledgeStore,
    question_type: str,
    difficulty: str,
    count: int,
    topics,
    previous_questions=None,
) -> str:
    """Compose the generation prompt, grounded on the resolved topics' content."""
    _check_request(question_type, difficulty, count, topics)
    resolved = knowledge.resolve(topics)
    if not resolved:
        raise ValidationError("No topics were provided for quiz generation.")

    exclusion_section = ""
    if previous_questions:
        exclusion_section = EXCLUSION_DIRECTIVE.format(
            previous_questions=format_previous_questions(previous_questions),
        )

    return QUIZ_PROMPT.format(
        count=count,
        question_type=question_type,
        question_type_instruction=QUESTION_TYPE_INSTRUCTIONS[question_type],
        difficulty=difficulty,
        difficulty_instruction=DIFFICULTY_INSTRUCTION.format(difficulty=difficulty),
        topic_names=", ".join(t.topic for t in resolved),
        coverage_instruction=format_coverage(count, len(resolved)),
        exclusion_section=exclusion_section,
        knowledge_context=format_knowledge_context(resolved),
    )


def _decode_questions(data: dict, difficulty: str) -> list[Question]:
    """Turn the provider's ``{"questions": [...]}`` payload into Question records.

    Raises ProviderError when the payload has no usable ``questions`` array
    and ValidationError when an item lacks question text or options.
    Batches that break the 4-options / 1-correct format are accepted and
    only logged.
    """
    items = data.get("questions")
    if not isinstance(items, list) or not items:
        raise ProviderError("Invalid response format from AI.")

    base_id = int(time.time() * 1000)
    questions: list[Question] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"question[{index}]: expected object, got {type(item).__name__}")
        text = item.get("questionText")
        if not isinstance(text, str) or not text.strip():
            raise ValidationError(f"question[{index}]: missing questionText")
        raw_options = item.get("options")
        if not isinstance(raw_options, list) or not raw_options:
            raise ValidationError(f"question[{index}]: missing options")

        options: list[QuestionOption] = []
        for opt_index, opt in enumerate(raw_options):
            if not isinstance(opt, dict) or not isinstance(opt.get("text"), str):
                raise ValidationError(f"question[{index}].options[{opt_index}]: missing text")
            options.append(QuestionOption(text=opt["text"], is_correct=opt.get("isCorrect") is True))

        correct = sum(1 for o in options if o.is_correct)
        if len(options) != 4 or correct != 1:
            _log.warning(
                "question[%d] has %d options / %d correct; accepting as provided",
                index, len(options), correct,
            )

        questions.append(Question(
            id=base_id + index,
            question_text=text,
            options=tuple(options),
            difficulty=difficulty,
        ))
    return questions


async def generate_questions(
    llm: LLMProvider,
    knowledge: KnowledgeStore,
    question_type: str,
    difficulty: str,
    count: int,
    topics,
    previous_questions=None,
) -> list[Question]:
    """Generate a question batch for the given config.

    *previous_questions* (the just-finished batch) are listed in the prompt
    so the provider avoids repeating them. A response that cannot be parsed
    or decoded is retried once with the problem fed back; a failed provider
    call is not retried.
    """
    base_prompt = build_generation_prompt(
        knowledge, question_type, difficulty, count, topics, previous_questions,
    )

    prompt = base_prompt
    last_error: ProviderError | ValidationError | None = None
    for attempt in range(MAX_ATTEMPTS):
        _log.info("Generate %d %s/%s questions (attempt %d/%d)",
                  count, difficulty, question_type, attempt + 1, MAX_ATTEMPTS)
        try:
            response = await llm.generate(prompt, schema=QUESTIONS_SCHEMA)
        except Exception as e:
            _log.warning("Completion request failed: %s", e)
            raise ProviderError(f"Completion request failed: {e}") from e

        data = _extract_json(response or "")
        if data is None:
            last_error = ProviderError("The AI response was not valid JSON.")
        else:
            try:
                questions = _decode_questions(data, difficulty)
            except (ProviderError, ValidationError) as e:
                last_error = e
            else:
                _log.info("  OK: %d questions from %s", len(questions), llm.name())
                return questions

        _log.info("  Attempt failed (%s), feeding back", last_error)
        _log.debug("  Raw response: %.300s", response)
        prompt = base_prompt + RETRY_FEEDBACK.format(reason=last_error)

    assert last_error is not None
    raise last_error
