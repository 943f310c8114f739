"""Custom exceptions for chat rooms and messaging."""

from common.exceptions import ForbiddenError, NotFoundError, ValidationFailedError


class ChatNotFoundError(NotFoundError):
    """Raised when a chat room cannot be found."""
    default_message = "Chat not found"


class ChatForbiddenError(ForbiddenError):
    """Raised when the user is not a participant of the chat room."""
    default_message = "Not authorized to view this chat"


class ChatValidationError(ValidationFailedError):
    """Raised when a chat cannot be opened with the given participants."""
    pass


class UserNotFoundError(NotFoundError):
    default_message = "User not found"


class MessageValidationError(ValidationFailedError):
    """Raised when message content is empty or too long."""
    pass
