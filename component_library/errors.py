"""Error taxonomy for the component catalog.

Contract:
- TransportError: network or HTTP failure, carries the status code when known
- AuthRequiredError: 401/403, the caller may supply a token and retry once
- NotFoundError: requested version/collection absent (usually modeled as None)
- ParseError: malformed remote payload
- PersistenceError: durable storage I/O failure
- ConfigurationError: invalid local configuration
"""

from __future__ import annotations

from typing import Any


class CatalogError(Exception):
    """Base class for all catalog errors."""

    code = "UNKNOWN_ERROR"
    default_user_message = "An unexpected error occurred. Please try again."
    recoverable = False

    def __init__(self, message: str, *, user_message: str | None = None, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.user_message = user_message or self.default_user_message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "recoverable": self.recoverable,
            "details": self.details,
        }


class TransportError(CatalogError):
    """Network or HTTP failure talking to the remote API."""

    code = "NETWORK_ERROR"
    default_user_message = "Network connection failed. Please check your connection."
    recoverable = True

    def __init__(self, message: str, *, status_code: int | None = None, url: str | None = None) -> None:
        super().__init__(message, details={"status_code": status_code, "url": url})
        self.status_code = status_code
        self.url = url
        if status_code == 404:
            self.code = "NOT_FOUND"
            self.user_message = "Resource not found. The component or project may not exist."
        elif status_code == 429:
            self.code = "RATE_LIMIT"
            self.user_message = "Rate limit exceeded. Please wait a moment before trying again."
        elif status_code is not None and status_code >= 500:
            self.code = "SERVER_ERROR"
            self.user_message = "GitLab server error. Please try again later."


class AuthRequiredError(TransportError):
    """Remote API refused the request (401/403); a credential is needed."""

    recoverable = False

    def __init__(self, message: str, *, status_code: int | None = None, url: str | None = None, host: str | None = None) -> None:
        super().__init__(message, status_code=status_code, url=url)
        self.code = "UNAUTHORIZED"
        self.user_message = "Authentication failed. Please check your GitLab token."
        self.host = host


class NotFoundError(CatalogError):
    """Requested version or collection does not exist."""

    code = "VERSION_NOT_FOUND"
    default_user_message = "Specified version not found for this component."
    recoverable = True


class ParseError(CatalogError):
    """Remote payload could not be parsed or validated."""

    code = "PARSE_ERROR"
    default_user_message = "Failed to parse component data."

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message, details={"source": source[:500] if source else None})


class PersistenceError(CatalogError):
    """Durable storage read or write failed."""

    code = "CACHE_WRITE_ERROR"
    default_user_message = "Failed to write to cache. Changes may not persist."
    recoverable = True

    def __init__(self, message: str, *, operation: str = "write", key: str | None = None) -> None:
        super().__init__(message, details={"operation": operation, "key": key})
        if operation == "read":
            self.code = "CACHE_READ_ERROR"
            self.user_message = "Failed to read from cache. Cache will be rebuilt."


class ConfigurationError(CatalogError):
    """Local configuration is invalid."""

    code = "INVALID_CONFIG"
    default_user_message = "Configuration is invalid. Please check your settings."
