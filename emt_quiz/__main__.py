"""CLI entry point for emt-quiz.

Usage:
  python -m emt_quiz serve [--port PORT] [--host HOST]
  python -m emt_quiz stop
  python -m emt_quiz restart [--port PORT]
  python -m emt_quiz status
  python -m emt_quiz topics [--search TERM]
  python -m emt_quiz add-topic FILE.txt
  python -m emt_quiz delete-topic NAME [--yes]
  python -m emt_quiz history
  python -m emt_quiz clear [--yes]
  python -m emt_quiz generate --topic NAME [--topic NAME ...] [--count N]
                              [--type Knowledge-Based|Scenario-Based] [--difficulty Easy|Hard]
"""
from __future__ import annotations

import asyncio
import os
import signal
import sys
from pathlib import Path

PID_FILE = Path(__file__).resolve().parent.parent / ".server.pid"


def main():
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    if command == "serve":
        _serve(args[1:])
    elif command == "stop":
        _stop()
    elif command == "restart":
        _restart(args[1:])
    elif command == "status":
        _status()
    elif command == "topics":
        _topics(args[1:])
    elif command == "add-topic":
        _add_topic(args[1:])
    elif command == "delete-topic":
        _delete_topic(args[1:])
    elif command == "history":
        _history()
    elif command == "clear":
        _clear(args[1:])
    elif command == "generate":
        _generate(args[1:])
    else:
        print(f"Unknown command: {command}")
        print("Commands: serve, stop, restart, status, topics, add-topic, delete-topic, "
              "history, clear, generate")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _parse_multi(args: list[str], name: str) -> list[str]:
    return [args[i + 1] for i, a in enumerate(args) if a == name and i + 1 < len(args)]


def _confirm(question: str, args: list[str]) -> bool:
    if "--yes" in args:
        return True
    reply = input(f"{question} [y/N] ").strip().lower()
    return reply in ("y", "yes")


def _open_stores():
    from emt_quiz.config import load_settings
    from emt_quiz.db import Database
    from emt_quiz.history import HistoryStore
    from emt_quiz.knowledge import KnowledgeStore
    from emt_quiz.parsers.knowledge_parser import parse_knowledge_file

    settings = load_settings()
    db = Database(settings.db_full_path)
    knowledge = KnowledgeStore(parse_knowledge_file(settings.knowledge_full_path), db)
    knowledge.load()
    history = HistoryStore(db)
    history.load()
    return settings, db, knowledge, history


# ── Server lifecycle ──────────────────────────────────────────────────────

def _read_pid() -> int | None:
    """Read PID from file, return None if stale or missing."""
    if not PID_FILE.exists():
        return None
    try:
        pid = int(PID_FILE.read_text().strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError, PermissionError):
        PID_FILE.unlink(missing_ok=True)
        return None


def _stop() -> bool:
    """Stop a running server. Returns True if a server was stopped."""
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
        return False
    try:
        os.kill(pid, signal.SIGTERM)
        print(f"Stopped server (PID {pid}).")
        PID_FILE.unlink(missing_ok=True)
        return True
    except ProcessLookupError:
        print("Server was not running (stale PID file removed).")
        PID_FILE.unlink(missing_ok=True)
        return False


def _status():
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
    else:
        print(f"Server is running (PID {pid}).")


def _restart(args: list[str]):
    import time
    _stop()
    time.sleep(1)
    _serve(args)


def _serve(args: list[str]):
    import uvicorn

    existing = _read_pid()
    if existing is not None:
        print(f"Server already running (PID {existing}). Use 'restart' or 'stop' first.")
        sys.exit(1)

    port = int(_parse_flag(args, "--port", "8765"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    PID_FILE.write_text(str(os.getpid()))

    print(f"Starting EMT Quiz on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    try:
        uvicorn.run(
            "emt_quiz.app:app",
            host=host,
            port=port,
            reload=False,
            timeout_graceful_shutdown=5,
        )
    finally:
        PID_FILE.unlink(missing_ok=True)


# ── Topics ────────────────────────────────────────────────────────────────

def _topics(args: list[str]):
    _, db, knowledge, _ = _open_stores()
    term = _parse_flag(args, "--search", "")
    topics = knowledge.search(term) if term else knowledge.topics
    for t in topics:
        marker = " (custom)" if t.is_custom else ""
        print(f"  {t.topic}{marker}")
    print(f"\n{len(topics)} topics")
    db.close()


def _add_topic(args: list[str]):
    from emt_quiz.errors import ValidationError
    from emt_quiz.parsers.knowledge_parser import read_topic_file

    if not args:
        print("Usage: add-topic FILE.txt")
        sys.exit(1)
    _, db, knowledge, _ = _open_stores()
    try:
        parsed = read_topic_file(Path(args[0]))
        topic = knowledge.add_custom(parsed.topic, parsed.content)
    except (ValidationError, OSError) as e:
        print(f"Could not add topic: {e}")
        db.close()
        sys.exit(1)
    print(f"Added custom topic '{topic.topic}' ({len(topic.content)} chars)")
    db.close()


def _delete_topic(args: list[str]):
    from emt_quiz.errors import ValidationError

    names = [a for a in args if not a.startswith("--")]
    if not names:
        print("Usage: delete-topic NAME [--yes]")
        sys.exit(1)
    name = names[0]
    if not _confirm(f'Are you sure you want to delete the custom topic "{name}"?', args):
        print("Cancelled.")
        return
    _, db, knowledge, _ = _open_stores()
    try:
        knowledge.delete_custom(name)
    except ValidationError as e:
        print(e)
        db.close()
        sys.exit(1)
    print(f"Deleted '{name}'.")
    db.close()


# ── History ───────────────────────────────────────────────────────────────

def _history():
    _, db, _, history = _open_stores()
    results = history.results
    if not results:
        print("No quiz history yet.")
    for r in results:
        print(f"  {r.date[:16].replace('T', ' ')}  {r.difficulty:4s} {r.question_type:15s} "
              f"{r.score}/{r.total_questions} ({r.percentage}%)  {', '.join(r.topics)}")
    db.close()


def _clear(args: list[str]):
    from emt_quiz.errors import PersistenceError
    from emt_quiz.history import clear_app_data

    question = ("Are you sure you want to clear all quiz history and custom topics? "
                "This action cannot be undone.")
    if not _confirm(question, args):
        print("Cancelled.")
        return
    _, db, knowledge, history = _open_stores()
    try:
        clear_app_data(history, knowledge)
    except PersistenceError as e:
        print(f"Could not clear history and topics: {e}")
        db.close()
        sys.exit(1)
    print("Cleared quiz history and custom topics.")
    db.close()


# ── Generation preview ────────────────────────────────────────────────────

def _generate(args: list[str]):
    from emt_quiz.errors import QuizError
    from emt_quiz.models import EASY, KNOWLEDGE_BASED
    from emt_quiz.providers.registry import make_llm
    from emt_quiz.question_generator import generate_questions

    settings, db, knowledge, _ = _open_stores()
    topics = _parse_multi(args, "--topic")
    count = int(_parse_flag(args, "--count", str(settings.default_question_count)))
    question_type = _parse_flag(args, "--type", KNOWLEDGE_BASED)
    difficulty = _parse_flag(args, "--difficulty", EASY)

    try:
        llm = make_llm(settings)
    except ValueError as e:
        print(e)
        db.close()
        sys.exit(1)

    print(f"Generating {count} {difficulty} {question_type} questions using {llm.name()}...")
    try:
        questions = asyncio.run(generate_questions(
            llm, knowledge, question_type, difficulty, count, topics,
        ))
    except QuizError as e:
        print(f"Generation failed: {e}")
        db.close()
        sys.exit(1)

    for n, q in enumerate(questions, 1):
        print(f"\n{n}. {q.question_text}")
        for o in q.options:
            print(f"   {'*' if o.is_correct else '-'} {o.text}")
    db.close()


if __name__ == "__main__":
    main()
