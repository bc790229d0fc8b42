import logging
import math
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from constants import (
    DEFAULT_RATE_LIMIT_WINDOWS,
    DEFAULT_REQUEST_TIMEOUT_MS,
    ENV_API_KEY,
    ENV_BOARD_ID,
    ENV_RATE_LIMITS,
    ENV_REQUEST_TIMEOUT_MS,
    ENV_TOKEN,
    RateLimitWindow,
)
from errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrelloConfig:
    """Settings for one Trello client.

    Attributes:
        api_key: Trello API key.
        token: Trello user token.
        board_id: Board that board-level operations act on.
        request_timeout_ms: Per-request timeout in milliseconds.
        rate_limit_windows: Ceilings enforced on outgoing requests.
    """

    api_key: str
    token: str
    board_id: str
    request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS
    rate_limit_windows: Tuple[RateLimitWindow, ...] = DEFAULT_RATE_LIMIT_WINDOWS

    def __post_init__(self) -> None:
        if self.request_timeout_ms <= 0:
            raise ConfigurationError(
                f"request_timeout_ms must be positive, got {self.request_timeout_ms}")
        if not self.rate_limit_windows:
            raise ConfigurationError("At least one rate limit window is required")
        for window in self.rate_limit_windows:
            if not math.isfinite(window.seconds) or window.seconds <= 0 or window.max_requests <= 0:
                raise ConfigurationError(f"Invalid rate limit window: {window}")

    @property
    def api_key_present(self) -> bool:
        return bool(self.api_key)

    @property
    def token_present(self) -> bool:
        return bool(self.token)

    @property
    def request_timeout(self) -> float:
        """Per-request timeout in seconds, as requests expects it."""
        return self.request_timeout_ms / 1000


def parse_rate_limits(value: str) -> Tuple[RateLimitWindow, ...]:
    """Parses ``"seconds:max,seconds:max"`` into rate limit windows.

    Example:
        '1:10,600:300' -> (RateLimitWindow(1.0, 10), RateLimitWindow(600.0, 300))
    """
    windows = []
    for chunk in value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        seconds, sep, max_requests = chunk.partition(":")
        if not sep:
            raise ConfigurationError(f"Rate limit {chunk!r} is not of the form seconds:max")
        try:
            windows.append(RateLimitWindow(float(seconds), int(max_requests)))
        except ValueError as e:
            raise ConfigurationError(f"Rate limit {chunk!r} is not numeric") from e
    if not windows:
        raise ConfigurationError(f"No rate limits found in {value!r}")
    return tuple(windows)


def load_config(env: Optional[Mapping[str, str]] = None) -> TrelloConfig:
    """Builds a TrelloConfig from environment variables.

    Args:
        env: Mapping to read from; defaults to ``os.environ``.

    Raises:
        ConfigurationError: If a required variable is missing or a value is malformed.
    """
    env = os.environ if env is None else env

    missing = [name for name in (ENV_API_KEY, ENV_TOKEN, ENV_BOARD_ID) if not env.get(name)]
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

    timeout_ms = DEFAULT_REQUEST_TIMEOUT_MS
    raw_timeout = env.get(ENV_REQUEST_TIMEOUT_MS)
    if raw_timeout:
        try:
            timeout_ms = int(raw_timeout)
        except ValueError as e:
            raise ConfigurationError(f"{ENV_REQUEST_TIMEOUT_MS} must be an integer, got {raw_timeout!r}") from e

    windows = DEFAULT_RATE_LIMIT_WINDOWS
    raw_limits = env.get(ENV_RATE_LIMITS)
    if raw_limits:
        windows = parse_rate_limits(raw_limits)

    logger.debug("Loaded configuration for board %s", env[ENV_BOARD_ID])
    return TrelloConfig(
        api_key=env[ENV_API_KEY],
        token=env[ENV_TOKEN],
        board_id=env[ENV_BOARD_ID],
        request_timeout_ms=timeout_ms,
        rate_limit_windows=windows,
    )
