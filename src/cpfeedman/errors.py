"""Exceptions raised when talking to the Check Point management API."""


class CheckPointError(Exception):
    """Base class for management API failures."""

    def with_context(self, context: str) -> "CheckPointError":
        """Same kind of error with ``context`` prefixed to the message."""
        return type(self)(f"{context}: {self}")


class TransportError(CheckPointError):
    """The HTTP request could not be completed (DNS, TCP, TLS, timeout)."""


class ApiError(CheckPointError):
    """The management API answered with a non-200 status."""

    def __init__(self, message: str, status_code: int, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.body:
            return f"{base}: {self.body[:200]}"
        return base

    def with_context(self, context: str) -> "ApiError":
        return ApiError(f"{context}: {self.args[0]}", self.status_code, self.body)


class DecodeError(CheckPointError):
    """A response body was not the JSON we expected."""


class AuthError(CheckPointError):
    """Login failed or returned no session id."""
