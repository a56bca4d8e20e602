"""
Chapter listing parser.

The listing is plain text in which a ``# Chapter <n>`` marker line is
followed by the URL of that chapter's page::

    # Chapter 1
    https://example.com/manga/chapter-1
    # Chapter 2
    https://example.com/manga/chapter-2
"""

import re
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Union

from imgliex.data.models import ChapterLink
from imgliex.utils.errors import MalformedInputError
from imgliex.utils.logging import get_logger


logger = get_logger(__name__)

CHAPTER_MARKER = "# Chapter"
CHAPTER_PATTERN = re.compile(r"# Chapter (\d+)")

# getline-style trimming; other unicode whitespace is left in the URL
URL_WHITESPACE = " \t\r\n"


class LinkIndex:
    """Read-only mapping from chapter number to its ChapterLink."""

    def __init__(self, links: Optional[Dict[int, ChapterLink]] = None):
        self._links: Dict[int, ChapterLink] = dict(links or {})

    @classmethod
    def load(cls, source: Union[str, Path]) -> "LinkIndex":
        """
        Load a listing file.

        Args:
            source: Path to the listing

        Returns:
            Parsed index

        Raises:
            MalformedInputError: If the listing cannot be opened or read
        """
        path = Path(source)
        try:
            with open(path, 'r', encoding='utf-8', errors='replace') as f:
                index = cls.parse(f)
        except OSError as e:
            raise MalformedInputError(str(path), e) from e

        logger.info(f"Loaded {len(index)} chapter links from {path}")
        return index

    @classmethod
    def parse(cls, lines: Iterable[str]) -> "LinkIndex":
        """
        Parse listing lines into an index.

        A marker line consumes the line right after it as its URL, whatever
        that line contains. Lines that are not markers are ignored, and a
        marker with nothing after it is dropped. When a chapter number
        appears twice the later entry wins.
        """
        links: Dict[int, ChapterLink] = {}
        iterator = iter(lines)

        for line in iterator:
            if not line.startswith(CHAPTER_MARKER):
                continue

            match = CHAPTER_PATTERN.search(line)
            if not match:
                logger.debug(f"Ignoring malformed chapter marker: {line.rstrip()!r}")
                continue

            chapter_number = int(match.group(1))
            url_line = next(iterator, None)
            if url_line is None:
                logger.debug(f"Chapter {chapter_number} marker has no URL line")
                break

            if chapter_number < 1:
                logger.debug(f"Skipping chapter {chapter_number}: not a positive number")
                continue

            if chapter_number in links:
                logger.debug(f"Chapter {chapter_number} listed again, keeping the later URL")

            links[chapter_number] = ChapterLink(
                chapter_number=chapter_number,
                source_url=url_line.strip(URL_WHITESPACE)
            )

        return cls(links)

    def get(self, chapter_number: int) -> Optional[ChapterLink]:
        return self._links.get(chapter_number)

    def url_for(self, chapter_number: int) -> Optional[str]:
        link = self._links.get(chapter_number)
        return link.source_url if link else None

    def chapters(self) -> List[int]:
        """Chapter numbers in increasing order."""
        return sorted(self._links)

    def as_dict(self) -> Dict[int, str]:
        return {number: link.source_url for number, link in self._links.items()}

    def __contains__(self, chapter_number: object) -> bool:
        return chapter_number in self._links

    def __len__(self) -> int:
        return len(self._links)

    def __iter__(self) -> Iterator[ChapterLink]:
        for number in self.chapters():
            yield self._links[number]

    def __repr__(self) -> str:
        return f"LinkIndex(chapters={len(self)})"
