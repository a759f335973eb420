# Overview: Error taxonomy seen by the operator client.

"""
How the operator session reacts to each failure class:

- ValidationError: caught before any request is sent (or a 400/404 reply);
  shown inline, nothing was written
- AuthError: session is no longer valid; local session cleared, caller is
  sent back to login
- PermissionDenied: authenticated but not allowed; non-fatal, no state change
- ConflictOrServerError: network failure, 409, 5xx or an unexpected payload;
  retryable, every local edit buffer is kept
"""


class ClientError(Exception):
    """Base class; status is the HTTP status when a response was received."""

    def __init__(self, message: str, *, status: int | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code


class ValidationError(ClientError):
    pass


class AuthError(ClientError):
    pass


class PermissionDenied(ClientError):
    pass


class ConflictOrServerError(ClientError):
    retryable = True
