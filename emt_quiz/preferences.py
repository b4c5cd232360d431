from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from emt_quiz.db import THEME_KEY
from emt_quiz.errors import PersistenceError, ValidationError

if TYPE_CHECKING:
    from emt_quiz.db import Database

_log = logging.getLogger("emt_quiz.db")

THEMES = ("light", "dark")


def load_theme(db: Database, default: str = "dark") -> str:
    try:
        value = db.get(THEME_KEY)
    except PersistenceError as e:
        _log.warning("Failed to load theme: %s", e)
        return default
    return value if value in THEMES else default


def save_theme(db: Database, theme: str) -> str:
    if theme not in THEMES:
        raise ValidationError(f"Theme must be one of {', '.join(THEMES)} (got {theme!r})")
    try:
        db.set(THEME_KEY, theme)
    except PersistenceError as e:
        _log.warning("Failed to save theme: %s", e)
    return theme


def toggle_theme(db: Database, default: str = "dark") -> str:
    current = load_theme(db, default)
    return save_theme(db, "light" if current == "dark" else "dark")
