"""
HTTP fetcher backed by a shared requests session.
"""

import threading
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from imgliex.crawlers.base import BaseFetcher, DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from imgliex.utils.errors import FetchError
from imgliex.utils.logging import get_logger


logger = get_logger(__name__)

DEFAULT_ENCODING = 'utf-8'


class HTTPClient(BaseFetcher):
    """GET-only client: follows redirects, fixed timeout, static user agent, no retries."""

    def __init__(self,
                 timeout: float = DEFAULT_TIMEOUT,
                 user_agent: str = DEFAULT_USER_AGENT,
                 pool_size: int = 8):
        """
        Initialize HTTP client.

        Args:
            timeout: Default request timeout in seconds
            user_agent: Value sent in the User-Agent header
            pool_size: Connections kept per host; match the worker count
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self.pool_size = pool_size
        self._session_lock = threading.Lock()
        self.session: Optional[requests.Session] = self._create_session()
        self.logger = logger

    def _create_session(self) -> requests.Session:
        """Create requests session without automatic retries."""
        session = requests.Session()
        session.headers.update({
            'User-Agent': self.user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
        })

        # Failures are reported per chapter, never retried here
        retry_strategy = Retry(total=0, read=False)
        adapter = HTTPAdapter(
            max_retries=retry_strategy,
            pool_connections=self.pool_size,
            pool_maxsize=self.pool_size
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        return session

    def fetch(self, url: str, timeout: Optional[float] = None) -> str:
        """
        Perform a GET request and return the body text.

        Raises:
            FetchError: On connection errors, timeouts, invalid URLs or
                HTTP error statuses
        """
        with self._session_lock:
            session = self.session
        if session is None:
            raise FetchError(url, "HTTP client is closed")

        effective_timeout = timeout if timeout is not None else self.timeout

        try:
            self.logger.debug(f"Making HTTP request: GET {url}")
            response = session.get(url, timeout=effective_timeout, allow_redirects=True)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            self.logger.info(f"HTTP request failed: GET {url} (error: {e})")
            raise FetchError(url, e) from e

        self.logger.debug(
            f"HTTP request successful: GET {url} "
            f"(status={response.status_code}, size={len(response.content)})"
        )
        return self._decode(response)

    @staticmethod
    def _decode(response: requests.Response) -> str:
        """Body text, decoded as UTF-8 unless the server names a charset."""
        content_type = response.headers.get('Content-Type', '')
        if 'charset' not in content_type.lower():
            # requests would otherwise assume ISO-8859-1 for text/* bodies
            response.encoding = DEFAULT_ENCODING
        return response.text

    def close(self) -> None:
        """Close the HTTP session."""
        with self._session_lock:
            session, self.session = self.session, None
        if session is not None:
            session.close()
