"""
Typed errors raised by the attempt engine

Each error carries a machine-readable code and the HTTP status the API layer
renders it with.
"""


class QuizEngineError(Exception):
    """Base class for all engine errors"""

    status_code = 500
    error_code = "quiz_engine_error"

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__doc__
        super().__init__(self.message)


class NotFoundError(QuizEngineError):
    """Requested resource was not found"""

    status_code = 404
    error_code = "not_found"


class ForbiddenError(QuizEngineError):
    """Not allowed to perform this action"""

    status_code = 403
    error_code = "forbidden"


class ConflictError(QuizEngineError):
    """Request conflicts with the current state of the resource"""

    status_code = 409
    error_code = "conflict"


class LimitExceededError(QuizEngineError):
    """Maximum number of attempts reached for this quiz"""

    status_code = 403
    error_code = "attempt_limit_exceeded"


class InvalidStateError(QuizEngineError):
    """Operation is not valid for the attempt's current status"""

    status_code = 409
    error_code = "invalid_state"


class ValidationError(QuizEngineError):
    """Malformed request payload"""

    status_code = 422
    error_code = "validation_error"
