"""Error taxonomy shared by the engine services and the HTTP layer."""

from typing import Any


class PracticeError(Exception):
    """Base class for every error raised by the engine.

    ``code`` is the stable machine-readable name sent to clients and
    ``retryable`` tells the caller whether repeating the same request can
    succeed (as opposed to having to change the request).
    """

    code = "practice_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str = "", **extra: Any):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "detail": self.message,
            "retryable": self.retryable,
            **self.extra,
        }


class ValidationError(PracticeError):
    """Bad configuration or payload shape."""

    code = "validation_error"
    status_code = 422


class NotFound(PracticeError):
    """Session or question absent, or not owned by the caller."""

    code = "not_found"
    status_code = 404


class InvalidState(PracticeError):
    """Operation not legal in the session's current lifecycle state."""

    code = "invalid_state"
    status_code = 409


class InsufficientQuestions(PracticeError):
    """The question pool cannot satisfy the requested session size."""

    code = "insufficient_questions"
    status_code = 409

    def __init__(self, requested: int, found: int, message: str = ""):
        super().__init__(
            message or f"Only {found} of {requested} questions match the filters",
            requested=requested,
            found=found,
            shortfall=requested - found,
        )
        self.requested = requested
        self.found = found


class InsufficientDistractors(PracticeError):
    """Validation left fewer acceptable distractors than a question needs."""

    code = "insufficient_distractors"
    status_code = 409
    retryable = True

    def __init__(self, required: int, found: int, message: str = ""):
        super().__init__(
            message or f"Only {found} of {required} distractors passed validation",
            required=required,
            found=found,
            shortfall=required - found,
        )
        self.required = required
        self.found = found


class UpstreamUnavailable(PracticeError):
    """Question Store or Generation Service failure."""

    code = "upstream_unavailable"
    status_code = 503
    retryable = True


class ConcurrentUpdate(PracticeError):
    """Compare-and-swap on a session kept losing to concurrent writers."""

    code = "concurrent_update"
    status_code = 409
    retryable = True
