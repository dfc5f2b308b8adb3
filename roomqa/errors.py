"""
Domain errors raised by the room and question services

Every error carries a stable ``kind`` and an HTTP status code so the API layer
can render it without knowing about individual failure cases.
"""


class QAError(Exception):
    """Base class for all domain errors"""

    kind = "error"
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(QAError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found"


class RoomNotFound(NotFound):
    kind = "room_not_found"
    default_message = "Room not found"


class QuestionNotFound(NotFound):
    kind = "question_not_found"
    default_message = "Question not found"


class Forbidden(QAError):
    kind = "forbidden"
    status_code = 403
    default_message = "Not authorized to modify this room"


class RoomClosed(QAError):
    kind = "room_closed"
    status_code = 400
    default_message = "Room is closed"


class AlreadyClosed(QAError):
    kind = "already_closed"
    status_code = 400
    default_message = "Room is already closed"


class InvalidTransition(QAError):
    kind = "invalid_transition"
    status_code = 409
    default_message = "Invalid question status transition"


class DuplicateRoomName(QAError):
    kind = "duplicate_room_name"
    status_code = 400
    default_message = (
        "You already have a room with this name. Please choose a different name."
    )


class CodeSpaceExhausted(QAError):
    kind = "code_space_exhausted"
    status_code = 503
    default_message = "Could not generate unique room code"


class ValidationError(QAError):
    kind = "validation_error"
    status_code = 422
    default_message = "Invalid input"


class RateLimited(QAError):
    kind = "rate_limited"
    status_code = 429

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit exceeded. Please wait {retry_after} seconds before asking another question."
        )


class EmailTaken(QAError):
    kind = "email_taken"
    status_code = 400
    default_message = "An account with this email already exists"


class InvalidCredentials(QAError):
    kind = "invalid_credentials"
    status_code = 401
    default_message = "Invalid email or password"
