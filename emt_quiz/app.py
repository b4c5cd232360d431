"""FastAPI application: the local, single-user JSON surface over the quiz session."""
from __future__ import annotations

import asyncio
import logging

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from emt_quiz.config import Settings, load_settings, save_settings
from emt_quiz.db import Database
from emt_quiz.errors import InvalidTransitionError, PersistenceError, ValidationError
from emt_quiz.explanations import ExplanationService
from emt_quiz.history import HistoryStore, clear_app_data
from emt_quiz.knowledge import KnowledgeStore
from emt_quiz.models import DIFFICULTIES, QUESTION_TYPES, Question, QuizResult
from emt_quiz.parsers.knowledge_parser import parse_knowledge_file
from emt_quiz.preferences import load_theme, save_theme, toggle_theme
from emt_quiz.providers.registry import PROVIDERS, make_llm
from emt_quiz.scoring import result_band
from emt_quiz.session import (
    Completed,
    HistoryView,
    InProgress,
    NotStarted,
    QuizSession,
    Reviewing,
)

app = FastAPI(title="EMT Quiz")

# Global state (initialized in startup)
_db: Database | None = None
_settings: Settings | None = None
_knowledge: KnowledgeStore | None = None
_history: HistoryStore | None = None
_session: QuizSession | None = None
_explainer: ExplanationService | None = None

# Explanation tasks, kept referenced until they finish
_bg_tasks: set[asyncio.Task] = set()
_bg_log = logging.getLogger("emt_quiz.bg")

_LLM_KEYS = {"llm_provider", "llm_model", "ollama_url", "llm_thinking"}


def get_db() -> Database:
    assert _db is not None
    return _db


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


def get_knowledge() -> KnowledgeStore:
    assert _knowledge is not None
    return _knowledge


def get_history() -> HistoryStore:
    assert _history is not None
    return _history


def get_session() -> QuizSession:
    assert _session is not None
    return _session


def get_explainer() -> ExplanationService:
    assert _explainer is not None
    return _explainer


def _get_llm():
    return make_llm(get_settings())


@app.on_event("startup")
async def startup():
    global _db, _settings, _knowledge, _history, _session, _explainer
    if _db is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    _db = Database(_settings.db_full_path)
    _knowledge = KnowledgeStore(parse_knowledge_file(_settings.knowledge_full_path), _db)
    _knowledge.load()
    _history = HistoryStore(_db)
    _history.load()
    llm = _get_llm()
    _session = QuizSession(llm, _knowledge, _history)
    _explainer = ExplanationService(llm, _knowledge)


@app.on_event("shutdown")
async def shutdown():
    for t in set(_bg_tasks):
        t.cancel()
    if _db:
        _db.close()


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(InvalidTransitionError)
async def _transition_error(request: Request, exc: InvalidTransitionError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# ── Payloads ──────────────────────────────────────────────────────────────

def _result_summary(r: QuizResult) -> dict:
    return {
        "id": r.id,
        "date": r.date,
        "score": r.score,
        "totalQuestions": r.total_questions,
        "percentage": r.percentage,
        "difficulty": r.difficulty,
        "questionType": r.question_type,
        "topics": list(r.topics),
        "band": result_band(r.percentage),
    }


def _state_payload() -> dict:
    state = get_session().state
    payload: dict = {"state": state.name}
    if isinstance(state, NotStarted):
        payload["error"] = state.error
        payload["loading"] = state.loading
    elif isinstance(state, InProgress):
        total = len(state.questions)
        payload.update({
            "config": state.config.to_dict(),
            "questions": [q.to_dict() for q in state.questions],
            "answers": list(state.answers),
            "answered": state.answered_count,
            "total": total,
            "progress": round(state.answered_count / total * 100) if total else 0,
            "can_submit": state.can_submit,
        })
    elif isinstance(state, Completed):
        payload.update({
            "config": state.config.to_dict(),
            "result": state.result.to_dict(),
            "band": result_band(state.result.percentage),
            "regenerating": state.regenerating,
        })
    elif isinstance(state, HistoryView):
        payload["history"] = [_result_summary(r) for r in get_history().results]
    elif isinstance(state, Reviewing):
        payload.update({
            "result": state.result.to_dict(),
            "band": result_band(state.result.percentage),
        })
    return payload


def _after_transition(applied: bool = True) -> dict:
    # Explanation slots belong to the screen that requested them; a discarded
    # generation outcome left the screen as it was
    if applied:
        get_explainer().reset()
    return _state_payload()


# ── API: Session ──────────────────────────────────────────────────────────

@app.get("/api/state")
async def api_state():
    return _state_payload()


@app.get("/api/quiz/options")
async def api_quiz_options():
    s = get_settings()
    return {
        "question_types": list(QUESTION_TYPES),
        "difficulties": list(DIFFICULTIES),
        "question_counts": s.question_counts,
        "default_question_count": s.default_question_count,
    }


@app.post("/api/quiz/start")
async def api_quiz_start(request: Request):
    body = await request.json()
    state = await get_session().start(
        question_type=body.get("question_type", ""),
        difficulty=body.get("difficulty", ""),
        count=body.get("count", get_settings().default_question_count),
        topics=body.get("topics", []),
    )
    return _after_transition(applied=state is not None)


@app.post("/api/quiz/answer")
async def api_quiz_answer(request: Request):
    body = await request.json()
    if not isinstance(body.get("index"), int) or not isinstance(body.get("answer"), str):
        raise HTTPException(400, "index (int) and answer (str) are required")
    get_session().answer(body["index"], body["answer"])
    return _state_payload()


@app.post("/api/quiz/submit")
async def api_quiz_submit():
    get_session().submit()
    return _after_transition()


@app.post("/api/quiz/regenerate")
async def api_quiz_regenerate():
    state = await get_session().regenerate()
    return _after_transition(applied=state is not None)


@app.post("/api/quiz/restart")
async def api_quiz_restart():
    get_session().restart()
    return _after_transition()


# ── API: History ──────────────────────────────────────────────────────────

@app.get("/api/history")
async def api_history():
    return {"results": [_result_summary(r) for r in get_history().results]}


@app.post("/api/history/open")
async def api_history_open():
    get_session().view_history()
    return _after_transition()


@app.post("/api/history/close")
async def api_history_close():
    get_session().leave_history()
    return _after_transition()


@app.post("/api/history/{result_id}/review")
async def api_history_review(result_id: int):
    get_session().review(result_id)
    return _after_transition()


@app.post("/api/history/back")
async def api_history_back():
    get_session().back_to_history()
    return _after_transition()


@app.post("/api/history/clear")
async def api_history_clear(request: Request):
    body = await request.json() if await request.body() else {}
    if body.get("confirm") is not True:
        raise HTTPException(400, "Clearing all quiz history and custom topics requires confirmation")
    try:
        clear_app_data(get_history(), get_knowledge())
    except PersistenceError as e:
        logging.getLogger("emt_quiz.history").warning("Failed to clear app data: %s", e)
        return JSONResponse(
            status_code=500,
            content={"detail": "Could not clear history and topics. Please try again."},
        )
    return {"cleared": True, "topics": len(get_knowledge().topics)}


# ── API: Topics ───────────────────────────────────────────────────────────

def _topic_payload(t) -> dict:
    return {"topic": t.topic, "isCustom": t.is_custom, "length": len(t.content)}


@app.get("/api/topics")
async def api_topics(search: str = ""):
    kb = get_knowledge()
    topics = kb.search(search) if search else kb.topics
    return {"topics": [_topic_payload(t) for t in topics]}


@app.post("/api/topics")
async def api_add_topic(request: Request):
    body = await request.json()
    topic = get_knowledge().add_custom(body.get("topic", ""), body.get("content", ""))
    return _topic_payload(topic)


@app.delete("/api/topics/{name}")
async def api_delete_topic(name: str, confirm: bool = False):
    if not confirm:
        raise HTTPException(400, f'Deleting the custom topic "{name}" requires confirmation')
    get_knowledge().delete_custom(name)
    return {"deleted": name}


# ── API: Explanations ─────────────────────────────────────────────────────

def _find_explainable(question_id: int) -> tuple[Question, str | None, tuple[str, ...]]:
    """Locate a question on the results screen currently shown."""
    state = get_session().state
    if isinstance(state, Completed):
        result = state.result
    elif isinstance(state, Reviewing):
        result = state.result
    else:
        raise HTTPException(409, "Explanations are only available for a finished quiz")
    for i, q in enumerate(result.questions):
        if q.id == question_id:
            answer = result.user_answers[i] if i < len(result.user_answers) else None
            return q, answer, result.topics
    raise HTTPException(404, "Question not found")


@app.post("/api/explanations/{question_id}")
async def api_explain(question_id: int, wait: bool = False):
    question, answer, topics = _find_explainable(question_id)
    explainer = get_explainer()
    if explainer.is_loading(question_id):
        raise HTTPException(409, "Explanation is already loading")

    _bg_log.info("Explanation requested for question %d (%d in flight)", question_id, len(_bg_tasks))
    task = explainer.schedule(question, answer, topics)
    _bg_tasks.add(task)
    task.add_done_callback(_bg_tasks.discard)
    if wait:
        state = await task
        return {"question_id": question_id, **state.to_dict()}
    return JSONResponse(
        status_code=202,
        content={"question_id": question_id, **explainer.state(question_id).to_dict()},
    )


@app.get("/api/explanations/{question_id}")
async def api_explanation_state(question_id: int):
    state = get_explainer().state(question_id)
    if state is None:
        raise HTTPException(404, "No explanation requested for this question")
    return {"question_id": question_id, **state.to_dict()}


# ── API: Theme ────────────────────────────────────────────────────────────

@app.get("/api/theme")
async def api_get_theme():
    return {"theme": load_theme(get_db(), get_settings().default_theme)}


@app.put("/api/theme")
async def api_put_theme(request: Request):
    body = await request.json()
    return {"theme": save_theme(get_db(), body.get("theme", ""))}


@app.post("/api/theme/toggle")
async def api_toggle_theme():
    return {"theme": toggle_theme(get_db(), get_settings().default_theme)}


# ── API: Settings ─────────────────────────────────────────────────────────

@app.get("/api/settings")
async def api_get_settings():
    return get_settings().to_dict()


@app.put("/api/settings")
async def api_update_settings(request: Request):
    body = await request.json()
    if "llm_provider" in body and body["llm_provider"] not in PROVIDERS:
        raise HTTPException(400, f"Unknown LLM provider: {body['llm_provider']}")
    s = get_settings()
    known = {f.name for f in Settings.__dataclass_fields__.values()}
    for k, v in body.items():
        if k in known:
            setattr(s, k, v)
    save_settings(s)
    if _LLM_KEYS & body.keys():
        llm = _get_llm()
        get_session().llm = llm
        get_explainer().llm = llm
    return s.to_dict()
