"""History Store: most-recent-first log of quiz results."""
from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from emt_quiz.db import HISTORY_KEY
from emt_quiz.errors import PersistenceError
from emt_quiz.models import QuizResult

if TYPE_CHECKING:
    from emt_quiz.db import Database
    from emt_quiz.knowledge import KnowledgeStore

_log = logging.getLogger("emt_quiz.history")


class HistoryStore:
    def __init__(self, db: Database | None = None):
        self.db = db
        self._results: list[QuizResult] = []

    @property
    def results(self) -> list[QuizResult]:
        return list(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def get(self, result_id: int) -> QuizResult | None:
        return next((r for r in self._results if r.id == result_id), None)

    def load(self) -> list[QuizResult]:
        """Read persisted history, back-filling ``questionType`` on old records.

        Any read or parse failure leaves an empty history.
        """
        self._results = []
        if self.db is None:
            return []
        try:
            raw = self.db.get(HISTORY_KEY)
            if not raw:
                return []
            entries = json.loads(raw)
            if not isinstance(entries, list):
                raise TypeError(f"expected a list, got {type(entries).__name__}")
            self._results = [QuizResult.from_dict(e) for e in entries]
        except (PersistenceError, json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
            _log.warning("Failed to load quiz history: %s", e)
            self._results = []
        return self.results

    def append(self, result: QuizResult) -> None:
        """Put *result* first and persist; a failed write keeps the in-memory entry."""
        self._results.insert(0, result)
        if self.db is None:
            return
        try:
            self.db.set(HISTORY_KEY, json.dumps([r.to_dict() for r in self._results]))
        except PersistenceError as e:
            _log.warning("Failed to save quiz history: %s", e)

    def clear(self) -> None:
        if self.db is not None:
            self.db.delete(HISTORY_KEY)
        self._results = []


def clear_app_data(history: HistoryStore, knowledge: KnowledgeStore) -> None:
    """Delete all history and custom topics. Callers must confirm first.

    Raises PersistenceError if storage cannot be cleared; in-memory state is
    only reset for the parts that were deleted.
    """
    history.clear()
    knowledge.reset()
    _log.info("Cleared quiz history and custom topics")
