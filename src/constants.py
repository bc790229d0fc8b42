from typing import Final, NamedTuple


class RateLimitWindow(NamedTuple):
    """A rolling window ceiling: at most ``max_requests`` per ``seconds``."""

    seconds: float
    max_requests: int


BASE_URL: Final[str] = "https://api.trello.com/1"

DEFAULT_REQUEST_TIMEOUT_MS: Final[int] = 10_000

# Burst limit first, sustained limit second.
DEFAULT_RATE_LIMIT_WINDOWS: Final[tuple[RateLimitWindow, ...]] = (
    RateLimitWindow(seconds=1.0, max_requests=10),
    RateLimitWindow(seconds=600.0, max_requests=300),
)

# Added to every computed wait; a denied caller never sleeps for zero seconds.
RETRY_SAFETY_MARGIN_SECONDS: Final[float] = 0.01

RATE_LIMIT_BACKOFF_SECONDS: Final[float] = 1.0

HTTP_UNAUTHORIZED: Final[int] = 401
HTTP_NOT_FOUND: Final[int] = 404
HTTP_TOO_MANY_REQUESTS: Final[int] = 429

ENV_API_KEY: Final[str] = "TRELLO_API_KEY"
ENV_TOKEN: Final[str] = "TRELLO_TOKEN"
ENV_BOARD_ID: Final[str] = "TRELLO_BOARD_ID"
ENV_REQUEST_TIMEOUT_MS: Final[str] = "TRELLO_REQUEST_TIMEOUT_MS"
ENV_RATE_LIMITS: Final[str] = "TRELLO_RATE_LIMITS"
