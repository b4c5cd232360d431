"""Tests for on-demand answer explanations."""
from __future__ import annotations

import asyncio

import pytest

from emt_quiz.errors import ProviderError
from emt_quiz.explanations import FAILURE_MESSAGE, ExplanationService, build_explanation_prompt
from emt_quiz.models import ExplanationState

TOPICS = ("Vital Signs",)


async def _wait_for_call(llm, n: int = 1):
    while llm.call_count < n:
        await asyncio.sleep(0)


class TestPrompt:
    def test_contents(self, knowledge, sample_questions):
        prompt = build_explanation_prompt(knowledge, sample_questions[1], "Head tilt-chin lift", TOPICS)
        assert '"Which manoeuvre is used when spinal injury is suspected?"' in prompt
        assert "- Recovery position" in prompt
        assert '**The Correct Answer is:**\n"Jaw thrust"' in prompt
        assert '**The student answered:**\n"Head tilt-chin lift"' in prompt
        assert "Topic: Vital Signs" in prompt
        assert "Tranexamic" not in prompt

    def test_unanswered(self, knowledge, sample_questions):
        prompt = build_explanation_prompt(knowledge, sample_questions[0], None, TOPICS)
        assert '"Not answered"' in prompt


class TestExplain:
    @pytest.mark.asyncio
    async def test_text_stripped(self, knowledge, fake_llm, sample_questions):
        svc = ExplanationService(fake_llm(responses=["  Jaw thrust protects the spine.\n"]), knowledge)
        text = await svc.explain(sample_questions[1], None, TOPICS)
        assert text == "Jaw thrust protects the spine."

    @pytest.mark.asyncio
    async def test_empty_response(self, knowledge, fake_llm, sample_questions):
        svc = ExplanationService(fake_llm(responses=["   "]), knowledge)
        with pytest.raises(ProviderError):
            await svc.explain(sample_questions[1], None, TOPICS)

    @pytest.mark.asyncio
    async def test_no_schema_requested(self, knowledge, fake_llm, sample_questions):
        llm = fake_llm(responses=["ok"])
        await ExplanationService(llm, knowledge).explain(sample_questions[0], None, TOPICS)
        assert llm.schemas == [None]


class TestSlots:
    @pytest.mark.asyncio
    async def test_request_success(self, knowledge, fake_llm, sample_questions):
        q = sample_questions[0]
        svc = ExplanationService(fake_llm(responses=["Because."]), knowledge)
        assert svc.state(q.id) is None
        state = await svc.request(q, "60-100 bpm", TOPICS)
        assert state == ExplanationState(text="Because.")
        assert svc.state(q.id) == state
        assert not svc.is_loading(q.id)

    @pytest.mark.asyncio
    async def test_request_failure(self, knowledge, fake_llm, sample_questions):
        q = sample_questions[0]
        svc = ExplanationService(fake_llm(error=RuntimeError("503")), knowledge)
        state = await svc.request(q, None, TOPICS)
        assert state == ExplanationState(error=FAILURE_MESSAGE)
        assert svc.state(q.id).text is None

    @pytest.mark.asyncio
    async def test_schedule_marks_loading(self, knowledge, fake_llm, sample_questions):
        q = sample_questions[0]
        llm = fake_llm(responses=["Because."])
        llm.gate = asyncio.Event()
        svc = ExplanationService(llm, knowledge)

        task = svc.schedule(q, None, TOPICS)
        assert svc.is_loading(q.id)
        assert svc.state(q.id) == ExplanationState(loading=True)

        llm.gate.set()
        await task
        assert svc.state(q.id).text == "Because."

    @pytest.mark.asyncio
    async def test_slots_are_independent(self, knowledge, fake_llm, sample_questions):
        llm = fake_llm(responses=["one", "two"])
        svc = ExplanationService(llm, knowledge)
        await svc.request(sample_questions[0], None, TOPICS)
        await svc.request(sample_questions[1], None, TOPICS)
        assert svc.state(sample_questions[0].id).text == "one"
        assert svc.state(sample_questions[1].id).text == "two"

    @pytest.mark.asyncio
    async def test_overlapping_requests_both_run(self, knowledge, fake_llm, sample_questions):
        q = sample_questions[0]
        llm = fake_llm(responses=["first", "second"])
        llm.gate = asyncio.Event()
        svc = ExplanationService(llm, knowledge)

        a = svc.schedule(q, None, TOPICS)
        b = svc.schedule(q, None, TOPICS)
        await _wait_for_call(llm, 2)
        llm.gate.set()
        await asyncio.gather(a, b)

        assert llm.call_count == 2
        assert svc.state(q.id).text == "second"

    @pytest.mark.asyncio
    async def test_reset_drops_late_response(self, knowledge, fake_llm, sample_questions):
        q = sample_questions[0]
        llm = fake_llm(responses=["late"])
        llm.gate = asyncio.Event()
        svc = ExplanationService(llm, knowledge)

        task = svc.schedule(q, None, TOPICS)
        await _wait_for_call(llm)
        svc.reset()
        llm.gate.set()
        state = await task

        assert state.text == "late"
        assert svc.state(q.id) is None
