import logging
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3 import Retry

from config import TrelloConfig
from constants import BASE_URL
from rate_limiter import _RateLimiter, create_trello_rate_limiter
from request_executor import _RequestExecutor
from utils import _without_none

logger = logging.getLogger(__name__)


class TrelloAPIClient:
    """A Python client for the Trello REST API v1.

    Every request goes through a shared rate limiter that enforces Trello's
    burst and sustained quotas, and through a request executor that retries
    HTTP 429 responses and translates other error statuses into
    ``TrelloError`` subclasses. Responses are returned as decoded JSON,
    unchanged.

    Args:
        config: Credentials, board id, timeout and rate limits.
        rate_limiter: Optional limiter; one is built from ``config`` if omitted.
            Must match ``executor.rate_limiter`` when both are given.
        executor: Optional request executor wrapping ``rate_limiter``.
        session: Optional requests session. Its adapters are left as they are
            and the credentials are merged into its default params.
        pool_size: Maximum number of pooled connections per host.

    Usage:
        client = TrelloAPIClient(load_config())
        lists = client.get_lists()
        cards = client.get_cards_by_list(lists[0]['id'])
    """

    BASE_URL = BASE_URL

    def __init__(
            self,
            config: TrelloConfig,
            rate_limiter: Optional[_RateLimiter] = None,
            executor: Optional[_RequestExecutor] = None,
            session: Optional[requests.Session] = None,
            pool_size: int = 10,
    ):
        logger.info(f"Initializing with boardId: {config.board_id}")
        if executor is not None and rate_limiter is not None and executor.rate_limiter is not rate_limiter:
            raise ValueError("Pass either rate_limiter or an executor built on it, not two different limiters")
        self.config = config
        self.timeout = config.request_timeout

        if executor is not None:
            self.rate_limiter = executor.rate_limiter
            self.executor = executor
        else:
            self.rate_limiter = rate_limiter or create_trello_rate_limiter(config.rate_limit_windows)
            self.executor = _RequestExecutor(self.rate_limiter)

        # Credentials are added to whatever default params the session already has.
        self.session = session if session is not None else requests.Session()
        self.session.params = {**(self.session.params or {}), 'key': config.api_key, 'token': config.token}

        # A caller-supplied session keeps its own adapters. Our own session gets
        # one without transport retries, since the executor owns the retry policy.
        if session is None:
            adapter = HTTPAdapter(
                pool_connections=pool_size,
                pool_maxsize=pool_size,
                max_retries=Retry(total=0, read=False, respect_retry_after_header=False),
            )
            self.session.mount('https://', adapter)
            self.session.mount('http://', adapter)

    def _build_headers(self) -> Dict[str, str]:
        return {
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }

    def _request(
            self,
            method: str,
            endpoint: str,
            params: Optional[Dict[str, Any]] = None,
            json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make a rate-limited API request.

        Args:
            method: HTTP method (e.g., 'GET', 'PUT').
            endpoint: API endpoint path.
            params: Query parameters.
            json: JSON payload for POST/PUT.

        Returns:
            Decoded JSON response or None for an empty body.

        Raises:
            TrelloError: For error statuses, as classified by the executor.
            requests.exceptions.RequestException: For network failures.
        """
        url = f'{self.BASE_URL}/{endpoint.lstrip("/")}'
        headers = self._build_headers()

        def send() -> Any:
            logger.debug(f'Making {method} request to {url} with params={params}, json={json}')
            try:
                response = self.session.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=params,
                    json=json,
                    timeout=self.timeout,
                )
                logger.debug(f'Response from {url}: Status {response.status_code}')
                response.raise_for_status()
                return response.json() if response.content else None
            except requests.exceptions.HTTPError as e:
                logger.error(f'Error from {url}: HTTP error: {e.response.status_code} - '
                             f'{e.response.text}')
                raise
            except requests.exceptions.RequestException as e:
                logger.error(f'Request to {url} failed: {str(e)}')
                raise

        return self.executor.execute(send, description=f'{method} /{endpoint.lstrip("/")}')

    # --- Board Endpoints ---

    def get_lists(self) -> List[Dict]:
        """Get the lists of the configured board.

        Returns:
            List of lists.
        """
        logger.info(f"Getting lists for board: {self.config.board_id}")
        return self._request('GET', f'/boards/{self.config.board_id}/lists')

    def get_recent_activity(self, limit: int = 10) -> List[Dict]:
        """Get the most recent actions on the configured board.

        Args:
            limit: Maximum number of actions to return.

        Returns:
            List of actions, newest first.
        """
        logger.info(f"Getting recent activity for board: {self.config.board_id} (limit: {limit})")
        return self._request('GET', f'/boards/{self.config.board_id}/actions',
                             params={'limit': limit})

    # --- List Endpoints ---

    def get_cards_by_list(self, list_id: str) -> List[Dict]:
        """Get the cards of a list.

        Args:
            list_id: List ID.

        Returns:
            List of cards.
        """
        logger.info(f"Getting cards for list: {list_id}")
        return self._request('GET', f'/lists/{list_id}/cards')

    def add_list(self, name: str) -> Dict:
        """Create a list on the configured board.

        Args:
            name: Name of the new list.

        Returns:
            Created list.
        """
        return self._request('POST', '/lists',
                             json={'name': name, 'idBoard': self.config.board_id})

    def archive_list(self, list_id: str) -> Dict:
        """Archive a list.

        Args:
            list_id: List ID.

        Returns:
            Archived list.
        """
        return self._request('PUT', f'/lists/{list_id}/closed', json={'value': True})

    # --- Card Endpoints ---

    def add_card(
            self,
            list_id: str,
            name: str,
            description: Optional[str] = None,
            due_date: Optional[str] = None,
            labels: Optional[List[str]] = None,
    ) -> Dict:
        """Create a card.

        Args:
            list_id: List the card is added to.
            name: Card title.
            description: Optional card description.
            due_date: Optional due date as an ISO 8601 string.
            labels: Optional label IDs.

        Returns:
            Created card.
        """
        payload = _without_none({
            'idList': list_id,
            'name': name,
            'desc': description,
            'due': due_date,
            'idLabels': labels,
        })
        return self._request('POST', '/cards', json=payload)

    def update_card(
            self,
            card_id: str,
            name: Optional[str] = None,
            description: Optional[str] = None,
            due_date: Optional[str] = None,
            labels: Optional[List[str]] = None,
    ) -> Dict:
        """Update a card. Fields left as None are not changed.

        Args:
            card_id: Card ID.
            name: New title.
            description: New description.
            due_date: New due date as an ISO 8601 string.
            labels: New label IDs.

        Returns:
            Updated card.
        """
        payload = _without_none({
            'name': name,
            'desc': description,
            'due': due_date,
            'idLabels': labels,
        })
        return self._request('PUT', f'/cards/{card_id}', json=payload)

    def archive_card(self, card_id: str) -> Dict:
        """Archive a card.

        Args:
            card_id: Card ID.

        Returns:
            Archived card.
        """
        return self._request('PUT', f'/cards/{card_id}', json={'closed': True})

    # --- Member Endpoints ---

    def get_my_cards(self) -> List[Dict]:
        """Get the cards assigned to the token's member.

        Returns:
            List of cards.
        """
        return self._request('GET', '/members/me/cards')
