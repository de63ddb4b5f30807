"""
Exception types raised by the quiz core.
"""


class QuizError(Exception):
    """Base exception for quiz errors."""
    pass


class ContentError(QuizError):
    """Raised when quiz content is missing or invalid and no quiz can run."""
    pass


class PreconditionViolation(QuizError):
    """Raised when a session operation is invoked in a state that does not allow it."""
    pass


class SinkError(QuizError):
    """Raised when a score could not be delivered to the leaderboard."""
    pass
