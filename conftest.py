"""
Pytest configuration and fixtures for imgliex tests.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import pytest
from hypothesis import settings, Verbosity, HealthCheck

from imgliex.crawlers.base import BaseFetcher
from imgliex.utils.errors import FetchError

# Configure Hypothesis for faster test runs
settings.register_profile(
    "fast", max_examples=25, deadline=5000, verbosity=Verbosity.quiet,
    suppress_health_check=[HealthCheck.function_scoped_fixture]
)
settings.register_profile(
    "thorough", max_examples=200, deadline=30000, verbosity=Verbosity.normal,
    suppress_health_check=[HealthCheck.function_scoped_fixture]
)

settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "fast"))


def image_markup(links: List[str], marker_first: bool = True) -> str:
    """Build a page whose images carry the imgholder marker."""
    tags = []
    for link in links:
        if marker_first:
            tags.append(f'<img class="imgholder" src="{link}" alt="page">')
        else:
            tags.append(f"<img src='{link}' class='imgholder'>")
    return "<html><body>\n" + "\n".join(tags) + "\n</body></html>"


class FakeFetcher(BaseFetcher):
    """Canned-markup fetcher that records every call.

    ``pages`` maps a URL to markup, or to an exception to raise. A callable
    value is invoked with the URL, which lets tests block or sleep.
    """

    def __init__(self, pages: Optional[Dict[str, Union[str, Exception, Callable[[str], str]]]] = None):
        self.pages = dict(pages or {})
        self.calls: List[str] = []
        self.timeouts: List[Optional[float]] = []
        self._lock = threading.Lock()

    def fetch(self, url: str, timeout: Optional[float] = None) -> str:
        with self._lock:
            self.calls.append(url)
            self.timeouts.append(timeout)

        page = self.pages.get(url)
        if page is None:
            raise FetchError(url, "404 Client Error: Not Found")
        if isinstance(page, Exception):
            raise page
        if callable(page):
            return page(url)
        return page

    def call_count(self, url: str) -> int:
        with self._lock:
            return self.calls.count(url)


@pytest.fixture
def output_dir(tmp_path) -> Path:
    """Per-test output root."""
    path = tmp_path / "output"
    path.mkdir()
    return path


@pytest.fixture
def write_listing(tmp_path):
    """Write a chapter listing file and return its path."""
    def _write(content: str, name: str = "manga.txt") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path
    return _write


def pytest_configure(config):
    """Configure pytest with custom settings."""
    logging.getLogger("imgliex").setLevel(logging.WARNING)
    logging.getLogger("hypothesis").setLevel(logging.WARNING)


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers."""
    for item in items:
        # Mark property-based tests
        if "properties" in item.path.name or any(
            marker.name == "hypothesis" for marker in item.iter_markers()
        ):
            item.add_marker(pytest.mark.property)

        if "integration" in item.path.name or "end_to_end" in item.name:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
