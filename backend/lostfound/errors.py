"""Error taxonomy shared by the chat components.

Handlers raise these; the realtime gateway turns them into structured
failure events so a failing command never escapes the event boundary.
"""


class ChatError(Exception):
    """Base exception for chat errors.

    Attributes:
        message: Detail for logs and for the failure payload.
        user_message: Generic, user-friendly explanation of the failure class.
    """
    user_message = "An unexpected error occurred. Please try again."

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ChatError):
    """Raised when a command is missing required fields or carries bad values."""
    user_message = "Some of the information you provided is not valid."


class NotFoundError(ChatError):
    """Raised when a chat, message, user or directory entry does not exist."""
    user_message = "The requested information could not be found."


class PersistenceError(ChatError):
    """Raised when a store write fails and was rolled back."""
    user_message = "There was a problem on our end. Please try again later."


class ExternalServiceError(ChatError):
    """Raised when fetching or uploading an attachment fails."""
    user_message = "We're having trouble with one of our services. Please try again later."

    def __init__(self, message: str, service: str = "storage"):
        self.service = service
        super().__init__(f"{service}: {message}")
