import logging
from enum import Enum
from typing import Callable, Optional, TypeVar

import requests

from constants import (
    HTTP_NOT_FOUND,
    HTTP_TOO_MANY_REQUESTS,
    HTTP_UNAUTHORIZED,
    RATE_LIMIT_BACKOFF_SECONDS,
)
from errors import ApiError, AuthenticationError, RateLimitExceededError, ResourceNotFoundError
from rate_limiter import Clock, _RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Classification(Enum):
    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    AUTH_ERROR = "auth_error"
    NOT_FOUND = "not_found"
    TRANSIENT_NETWORK = "transient_network"
    OTHER_CLIENT_ERROR = "other_client_error"
    FATAL_OTHER = "fatal_other"


def classify(error: Optional[BaseException]) -> Classification:
    """Maps a request failure to the kind of handling it gets.

    Args:
        error: The exception raised by the request, or None on success.

    Returns:
        The classification of the failure.
    """
    if error is None:
        return Classification.SUCCESS
    if isinstance(error, requests.exceptions.HTTPError) and error.response is not None:
        status = error.response.status_code
        if status == HTTP_TOO_MANY_REQUESTS:
            return Classification.RATE_LIMITED
        if status == HTTP_UNAUTHORIZED:
            return Classification.AUTH_ERROR
        if status == HTTP_NOT_FOUND:
            return Classification.NOT_FOUND
        return Classification.OTHER_CLIENT_ERROR
    if isinstance(error, requests.exceptions.RequestException):
        return Classification.TRANSIENT_NETWORK
    return Classification.FATAL_OTHER


def _upstream_message(error: requests.exceptions.HTTPError) -> str:
    """Returns the ``message`` field of a JSON error body, else the error text."""
    try:
        body = error.response.json()
    except ValueError:
        return str(error)
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return str(error)


class _RequestExecutor:
    """Runs API calls through the rate limiter and handles their failures.

    Every attempt first waits for the rate limiter. HTTP 429 responses are
    retried after a fixed backoff, by default without limit. 401, 404 and
    other error statuses are translated into this client's exceptions and
    never retried. Anything that is not an HTTP error response propagates
    unchanged.

    Args:
        rate_limiter: Limiter shared by every request of one client.
        backoff_seconds: Delay before retrying a rate-limited request.
        max_rate_limit_retries: Optional cap on 429 retries; None retries forever.
        clock: Sleep primitive for the backoff; defaults to the limiter's clock.
    """

    def __init__(
            self,
            rate_limiter: _RateLimiter,
            backoff_seconds: float = RATE_LIMIT_BACKOFF_SECONDS,
            max_rate_limit_retries: Optional[int] = None,
            clock: Optional[Clock] = None,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.backoff_seconds = backoff_seconds
        self.max_rate_limit_retries = max_rate_limit_retries
        self.clock = clock or rate_limiter.clock

    def execute(self, request_fn: Callable[[], T], description: str = "request") -> T:
        """Executes ``request_fn`` under rate limiting with the retry policy.

        Args:
            request_fn: Performs one network call; raises
                ``requests.exceptions.HTTPError`` for error statuses.
            description: Short label used in log lines and error messages.

        Returns:
            Whatever ``request_fn`` returns.

        Raises:
            AuthenticationError: On HTTP 401.
            ResourceNotFoundError: On HTTP 404.
            ApiError: On any other error status.
            RateLimitExceededError: When a retry cap is set and exhausted.
            requests.exceptions.RequestException: Network failures, unchanged.
        """
        attempt = 0
        while True:
            self.rate_limiter.acquire()
            try:
                return request_fn()
            except requests.exceptions.HTTPError as e:
                kind = classify(e)
                if kind is Classification.RATE_LIMITED:
                    if self.max_rate_limit_retries is not None and attempt >= self.max_rate_limit_retries:
                        logger.error(f"Rate limit retries exhausted for {description}")
                        raise RateLimitExceededError(attempt) from e
                    attempt += 1
                    logger.warning(
                        f"Rate limit exceeded for {description}, waiting "
                        f"{self.backoff_seconds:g} seconds before retry {attempt}"
                    )
                    self.clock.sleep(self.backoff_seconds)
                    continue
                if kind is Classification.AUTH_ERROR:
                    logger.error("Authentication error: Invalid API key or token")
                    raise AuthenticationError(
                        "Trello API authentication error: Please check your API key and token",
                        status_code=HTTP_UNAUTHORIZED,
                    ) from e
                if kind is Classification.NOT_FOUND:
                    logger.error(f"Resource not found error for {description}")
                    raise ResourceNotFoundError(
                        f"Trello API error: Resource not found ({description}). "
                        f"Check if board/list/card IDs are correct",
                        status_code=HTTP_NOT_FOUND,
                    ) from e
                if kind is Classification.OTHER_CLIENT_ERROR:
                    raise ApiError(
                        f"Trello API error: {_upstream_message(e)}",
                        status_code=e.response.status_code,
                    ) from e
                raise
