"""
Data models for chapter listings and extracted links.
"""

from dataclasses import dataclass, field
from typing import Tuple

from imgliex.utils.errors import ValidationError


@dataclass(frozen=True)
class ChapterLink:
    """One listing entry: a chapter number and the page that holds it."""
    chapter_number: int
    source_url: str

    def __post_init__(self):
        """Validate the entry after initialization."""
        if self.chapter_number < 1:
            raise ValidationError(
                "Chapter number must be positive",
                {"chapter_number": self.chapter_number}
            )


@dataclass(frozen=True)
class ExtractedLinkSet:
    """Resource links found on a chapter page, in document order."""
    chapter_number: int
    links: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def extracted_count(self) -> int:
        return len(self.links)
