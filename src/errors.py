from typing import Optional

import requests

# Network and timeout failures are not classified; they reach the caller
# as the requests exception that was raised.
TransportError = requests.exceptions.RequestException


class TrelloError(Exception):
    """Base class for every error raised by this client."""


class ConfigurationError(TrelloError):
    """Raised when required settings are missing or malformed."""


class ApiError(TrelloError):
    """An error response returned by the Trello API.

    Args:
        message: Human-readable description of the failure.
        status_code: HTTP status of the response, if there was one.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationError(ApiError):
    """The API key or token was rejected (HTTP 401)."""


class ResourceNotFoundError(ApiError):
    """The referenced board, list or card does not exist (HTTP 404)."""


class RateLimitExceededError(ApiError):
    """Raised only when a retry cap is configured and every retry got HTTP 429."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Trello API rate limit still exceeded after {attempts} retries",
            status_code=429,
        )
        self.attempts = attempts
