"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import json

import pytest

from emt_quiz.db import Database
from emt_quiz.history import HistoryStore
from emt_quiz.knowledge import KnowledgeStore
from emt_quiz.models import (
    EASY,
    KNOWLEDGE_BASED,
    KnowledgeTopic,
    Question,
    QuestionOption,
    QuizResult,
)


class FakeLLM:
    """Scripted provider that records every prompt it is sent.

    Returns ``responses`` in order (repeating the last one), raises ``error``
    if set, and waits on ``gate`` first when one is given.
    """

    def __init__(self, responses=None, error: Exception | None = None):
        self.responses = list(responses or [])
        self.error = error
        self.gate: asyncio.Event | None = None
        self.prompts: list[str] = []
        self.schemas: list[dict | None] = []

    async def generate(self, prompt: str, temperature: float = 0.7, schema: dict | None = None) -> str:
        self.prompts.append(prompt)
        self.schemas.append(schema)
        # Response is picked by call order, not completion order
        idx = min(len(self.prompts), len(self.responses)) - 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.responses[idx]

    def name(self) -> str:
        return "fake-llm"

    @property
    def call_count(self) -> int:
        return len(self.prompts)


def questions_payload(n: int = 3, prefix: str = "Question") -> str:
    """A well-formed ``{"questions": [...]}`` response with option A correct."""
    return json.dumps({
        "questions": [
            {
                "questionText": f"{prefix} {i + 1}?",
                "options": [
                    {"text": f"A{i + 1}", "isCorrect": True},
                    {"text": f"B{i + 1}", "isCorrect": False},
                    {"text": f"C{i + 1}", "isCorrect": False},
                    {"text": f"D{i + 1}", "isCorrect": False},
                ],
            }
            for i in range(n)
        ]
    })


@pytest.fixture
def fake_llm():
    """Factory for FakeLLM instances."""
    return FakeLLM


@pytest.fixture
def payload():
    return questions_payload


@pytest.fixture
def tmp_db(tmp_path):
    """Create a fresh temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def builtin_topics():
    return [
        KnowledgeTopic("Vital Signs", "Adult pulse: 60-100 bpm. Respiratory rate: 12-20/min."),
        KnowledgeTopic("Basic Airway Management", "Head tilt-chin lift. Jaw thrust if spinal injury suspected."),
        KnowledgeTopic("Tranexamic Acid (TXA)", "First dose 1g in 100ml NS over 10 mins."),
    ]


@pytest.fixture
def knowledge(builtin_topics, tmp_db):
    store = KnowledgeStore(builtin_topics, tmp_db)
    store.load()
    return store


@pytest.fixture
def history(tmp_db):
    store = HistoryStore(tmp_db)
    store.load()
    return store


@pytest.fixture
def sample_questions():
    return (
        Question(
            id=1001,
            question_text="What is the normal adult pulse rate?",
            options=(
                QuestionOption("60-100 bpm", True),
                QuestionOption("40-60 bpm", False),
                QuestionOption("100-140 bpm", False),
                QuestionOption("20-40 bpm", False),
            ),
            difficulty=EASY,
        ),
        Question(
            id=1002,
            question_text="Which manoeuvre is used when spinal injury is suspected?",
            options=(
                QuestionOption("Head tilt-chin lift", False),
                QuestionOption("Jaw thrust", True),
                QuestionOption("Recovery position", False),
                QuestionOption("Back blows", False),
            ),
            difficulty=EASY,
        ),
        Question(
            id=1003,
            question_text="What is the first adult dose of TXA?",
            options=(
                QuestionOption("500mg", False),
                QuestionOption("2g", False),
                QuestionOption("1g", True),
                QuestionOption("15mg/kg", False),
            ),
            difficulty=EASY,
        ),
    )


@pytest.fixture
def sample_result(sample_questions):
    return QuizResult(
        id=1700000000000,
        date="2024-11-14T22:13:20.000Z",
        score=2,
        total_questions=3,
        percentage=67,
        questions=sample_questions,
        user_answers=("60-100 bpm", "Head tilt-chin lift", "1g"),
        difficulty=EASY,
        question_type=KNOWLEDGE_BASED,
        topics=("Vital Signs", "Basic Airway Management", "Tranexamic Acid (TXA)"),
    )


@pytest.fixture
def knowledge_md_content():
    """Minimal knowledge-base markdown for parser testing."""
    return """\
# EMT Knowledge Base

---

## Vital Signs

Normal Ranges:
- Adult pulse: 60-100 bpm

---

## Empty Topic

---

## Basic Airway Management

Head tilt-chin lift.
Jaw thrust if spinal injury suspected.
"""
