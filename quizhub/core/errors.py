"""Error taxonomy for the quiz platform.

Every error is recoverable at the call site. The API layer maps each class to
an HTTP status code; services raise them before touching the store so a failed
operation never leaves a partial write behind.
"""

from __future__ import annotations


class QuizHubError(Exception):
    """Base class for all domain errors."""


class NotFound(QuizHubError):
    """A quiz, question, attempt or notification does not exist."""


class AttemptLimitExceeded(QuizHubError):
    """The student has used every attempt the quiz allows."""


class NotYetOpen(QuizHubError):
    """The quiz is scheduled to open in the future."""


class WindowClosed(QuizHubError):
    """The quiz expired and no longer accepts new attempts."""


class ValidationFailed(QuizHubError):
    """Malformed question, settings or answer input."""


class GenerationFailed(QuizHubError):
    """The question-generation collaborator failed or returned unusable data."""


class PermissionDenied(QuizHubError):
    """The acting user does not own the resource being changed."""
