"""Error taxonomy shared by the REST client and the session coordinators."""

from typing import Optional


class WatchdError(Exception):
    """Base for everything this package raises on purpose."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


# ── REST client ──────────────────────────────────────────────────

class ApiError(WatchdError):
    """A request to the backend failed."""


class InvalidUrlError(ApiError):
    def __init__(self, url: str):
        super().__init__("Invalid URL")
        self.url = url


class UnauthorizedError(ApiError):
    """HTTP 401. Triggers the global session teardown before being raised."""

    def __init__(self):
        super().__init__("Session expired. Please log in again.")


class ServerError(ApiError):
    """Non-2xx response carrying an optional message body."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        super().__init__(message or f"Server error ({status_code})")
        self.status_code = status_code


class DecodingError(ApiError):
    def __init__(self, cause: Exception):
        super().__init__(f"Data error: {cause}")
        self.cause = cause


class NetworkError(ApiError):
    def __init__(self, cause: Exception):
        super().__init__(str(cause) or cause.__class__.__name__)
        self.cause = cause


# ── Local preconditions ──────────────────────────────────────────

class EmptyFeedError(WatchdError):
    def __init__(self):
        super().__init__("No movie left to swipe.")


class ValidationError(WatchdError):
    """Input rejected locally, before any network call."""
