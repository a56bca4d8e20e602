"""
Resource link extraction from chapter page markup.

Tags are located with a plain forward scan, then the marker and source
attributes are matched inside each tag. A tag that is never closed ends
the scan, so unterminated markup cannot cause runaway backtracking.
"""

import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Pattern

from imgliex.utils.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class ExtractionRule:
    """Which elements hold resource links and which attribute carries the link."""
    tag: str = "img"
    marker_attribute: str = "class"
    marker_value: str = "imgholder"
    source_attribute: str = "src"

    @property
    def opener(self) -> str:
        return f"<{self.tag}"

    def marker_pattern(self) -> Pattern[str]:
        return re.compile(rf"""{re.escape(self.marker_attribute)}=["']{re.escape(self.marker_value)}["']""")

    def source_pattern(self) -> Pattern[str]:
        # CR/LF never appear in a captured link so each link stays one output line
        return re.compile(rf"""{re.escape(self.source_attribute)}=["']([^"'\r\n]+)["']""")


class LinkExtractor:
    """Applies an ExtractionRule to markup."""

    def __init__(self, rule: Optional[ExtractionRule] = None):
        self.rule = rule or ExtractionRule()
        self._marker = self.rule.marker_pattern()
        self._source = self.rule.source_pattern()

    def extract(self, markup: str) -> List[str]:
        """
        Return the resource links in document order.

        The fallback attribute order (source before marker) is only tried
        when the primary order (marker before source) finds nothing, so
        results from the two passes are never mixed. Markup that matches
        neither yields an empty list.
        """
        if not markup:
            return []

        tags = list(self._tags(markup))
        links = [link for link in map(self._marker_first, tags) if link is not None]

        # Alternative attribute order for pages that put src first
        if not links:
            links = [link for link in map(self._source_first, tags) if link is not None]
            if links:
                logger.debug(f"Primary order found nothing, fallback found {len(links)} links")

        return links

    def _tags(self, markup: str) -> Iterator[str]:
        """Yield every ``<tag ... >`` span, scanning forward only."""
        opener = self.rule.opener
        position = 0
        while True:
            start = markup.find(opener, position)
            if start < 0:
                return
            end = markup.find(">", start)
            if end < 0:
                return
            yield markup[start:end + 1]
            position = end + 1

    def _marker_first(self, tag: str) -> Optional[str]:
        marker = self._marker.search(tag)
        if marker is None:
            return None
        link = None
        # Last source after the first marker
        for match in self._source.finditer(tag, marker.end()):
            link = match.group(1)
        return link

    def _source_first(self, tag: str) -> Optional[str]:
        markers = list(self._marker.finditer(tag))
        if not markers:
            return None
        link = None
        # Last source that ends before the last marker
        for match in self._source.finditer(tag, 0, markers[-1].start()):
            link = match.group(1)
        return link
