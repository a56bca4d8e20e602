"""
Abstract base classes and interfaces for page fetchers.
"""

from abc import ABC, abstractmethod
from typing import Optional


DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = "imgliex/1.0"


class BaseFetcher(ABC):
    """Retrieves the raw markup of a chapter page."""

    @abstractmethod
    def fetch(self, url: str, timeout: Optional[float] = None) -> str:
        """
        Fetch a page body.

        Args:
            url: Page URL
            timeout: Request timeout in seconds, or None for the fetcher default

        Returns:
            Decoded response body

        Raises:
            FetchError: If the page cannot be retrieved
        """
        pass

    def close(self) -> None:
        """Release any held resources."""
        pass

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
