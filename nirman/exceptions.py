"""
Error taxonomy for the Nirman service.

Service functions raise these; the handlers registered in nirman.main turn
them into the JSON envelope {success: false, message, error?} with the
matching HTTP status code.
"""
from typing import Optional


class NirmanError(Exception):
    """Base exception for all request-level failures."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, error: Optional[str] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.error = error
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.error:
            body["error"] = self.error
        return body


class ValidationError(NirmanError):
    """Malformed or out-of-range input."""

    status_code = 400


class NotFoundError(NirmanError):
    """Unknown record id."""

    status_code = 404


class InvalidTransition(NirmanError):
    """Action not valid for the proposal's current status."""

    status_code = 400

    def __init__(self, current, action, message: Optional[str] = None):
        self.current = current
        self.action = action
        if message is None:
            message = "Cannot {} while work is '{}'".format(
                getattr(action, "label", action), getattr(current, "value", current)
            )
        super().__init__(message)


class AuthenticationError(NirmanError):
    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class AuthorizationError(NirmanError):
    status_code = 403

    def __init__(self, message: str = "You are not allowed to perform this action"):
        super().__init__(message)


class ConcurrentUpdateError(NirmanError):
    """The ledger row changed between read and write."""

    status_code = 409

    def __init__(self, message: str = "Work progress was modified concurrently, please retry"):
        super().__init__(message)
