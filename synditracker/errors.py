"""Error taxonomy for the hub.

Every error raised below the HTTP boundary derives from ``HubError`` and
carries the status code the API layer answers with. ``DispatchError`` is
the exception: alert delivery failures are logged by the dispatcher and
never reach an ingesting caller.
"""


class HubError(Exception):
    """Base class for hub errors that map onto an HTTP status."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthError(HubError):
    """Missing (401) or invalid/revoked (403) site credential."""

    def __init__(self, message: str, status_code: int = 403) -> None:
        super().__init__(message)
        self.status_code = status_code

    @classmethod
    def missing(cls) -> "AuthError":
        return cls("Unauthorized: Missing Site Key", status_code=401)

    @classmethod
    def invalid(cls) -> "AuthError":
        return cls("Unauthorized: Invalid Site Key", status_code=403)


class RateLimitError(HubError):
    """Per-key request budget exhausted for the current window."""

    status_code = 429

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        super().__init__(message or "Rate limit exceeded. Please try again later.")
        self.retry_after = max(int(retry_after), 1)


class ValidationError(HubError):
    """Malformed or missing request fields."""

    status_code = 400


class PersistenceError(HubError):
    """Storage unavailable or a write failed."""

    status_code = 500


class DispatchError(Exception):
    """Outbound alert channel failure."""

    def __init__(self, channel: str, reason: str) -> None:
        super().__init__(f"{channel}: {reason}")
        self.channel = channel
        self.reason = reason
