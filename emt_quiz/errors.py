"""Error taxonomy shared by the quiz core."""
from __future__ import annotations


class QuizError(Exception):
    """Base class for every error raised by the quiz core."""


class ValidationError(QuizError):
    """Bad or missing user input (empty topic selection, unknown topics, ...)."""


class ProviderError(QuizError):
    """The completion provider failed or returned unusable content."""


class PersistenceError(QuizError):
    """Reading or writing local storage failed."""


class InvalidTransitionError(QuizError):
    """A session operation was invoked from a state that does not allow it."""
