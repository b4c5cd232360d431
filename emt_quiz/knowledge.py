"""Knowledge Store: topic name -> reference text, built-ins plus custom entries."""
from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from emt_quiz.db import CUSTOM_TOPICS_KEY
from emt_quiz.errors import PersistenceError, ValidationError
from emt_quiz.models import KnowledgeTopic

if TYPE_CHECKING:
    from emt_quiz.db import Database

_log = logging.getLogger("emt_quiz.knowledge")


class KnowledgeStore:
    def __init__(self, builtins: list[KnowledgeTopic], db: Database | None = None):
        self._builtins = [
            KnowledgeTopic(topic=t.topic, content=t.content, is_custom=False) for t in builtins
        ]
        self._topics: list[KnowledgeTopic] = list(self._builtins)
        self.db = db

    @property
    def topics(self) -> list[KnowledgeTopic]:
        return list(self._topics)

    def names(self) -> list[str]:
        return [t.topic for t in self._topics]

    def custom_topics(self) -> list[KnowledgeTopic]:
        return [t for t in self._topics if t.is_custom]

    def get(self, name: str) -> KnowledgeTopic | None:
        return next((t for t in self._topics if t.topic == name), None)

    def has(self, name: str) -> bool:
        key = name.lower()
        return any(t.topic.lower() == key for t in self._topics)

    def search(self, term: str) -> list[KnowledgeTopic]:
        term = term.lower()
        return [t for t in self._topics if term in t.topic.lower()]

    def resolve(self, names) -> list[KnowledgeTopic]:
        """Topics whose exact name is in *names*, in store order. Unknown names are dropped."""
        wanted = set(names)
        return [t for t in self._topics if t.topic in wanted]

    # ── Persistence ─────────────────────────────────────────────────────

    def load(self) -> int:
        """Append persisted custom topics to the built-ins. Returns how many were added."""
        self._topics = list(self._builtins)
        if self.db is None:
            return 0
        try:
            raw = self.db.get(CUSTOM_TOPICS_KEY)
            entries = json.loads(raw) if raw else []
        except (PersistenceError, json.JSONDecodeError) as e:
            _log.warning("Failed to load custom topics: %s", e)
            return 0
        if not isinstance(entries, list):
            _log.warning("Ignoring custom topics: expected a list, got %s", type(entries).__name__)
            return 0

        added = 0
        for entry in entries:
            try:
                topic = KnowledgeTopic.from_dict(entry)
            except (KeyError, TypeError) as e:
                _log.warning("Skipping malformed custom topic %r: %s", entry, e)
                continue
            if self.has(topic.topic):
                _log.warning("Skipping custom topic '%s': name already in use", topic.topic)
                continue
            topic.is_custom = True
            self._topics.append(topic)
            added += 1
        return added

    def _save_custom(self) -> None:
        if self.db is None:
            return
        payload = json.dumps([t.to_dict() for t in self.custom_topics()])
        try:
            self.db.set(CUSTOM_TOPICS_KEY, payload)
        except PersistenceError as e:
            _log.warning("Failed to save custom topics: %s", e)

    # ── Mutation ────────────────────────────────────────────────────────

    def add_custom(self, name: str, content: str) -> KnowledgeTopic:
        name = name.strip()
        if not name:
            raise ValidationError("A topic name is required.")
        if not content.strip():
            raise ValidationError("The file appears to be empty or could not be read.")
        if self.has(name):
            raise ValidationError(
                f'A topic with the name "{name}" already exists. Please choose a different name.'
            )
        topic = KnowledgeTopic(topic=name, content=content, is_custom=True)
        self._topics.append(topic)
        self._save_custom()
        _log.info("Added custom topic '%s' (%d chars)", name, len(content))
        return topic

    def delete_custom(self, name: str) -> None:
        topic = self.get(name)
        if topic is None:
            raise ValidationError(f'No topic named "{name}".')
        if not topic.is_custom:
            raise ValidationError(f'"{name}" is a built-in topic and cannot be deleted.')
        self._topics = [t for t in self._topics if t.topic != name]
        self._save_custom()
        _log.info("Deleted custom topic '%s'", name)

    def reset(self) -> None:
        """Drop every custom topic, in storage and in memory."""
        if self.db is not None:
            self.db.delete(CUSTOM_TOPICS_KEY)
        self._topics = list(self._builtins)
