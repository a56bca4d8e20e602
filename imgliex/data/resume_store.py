"""
On-disk chapter output and the resume check built on it.

Each chapter's links live in ``<root>/chapter-<n>/base.txt``, one per line.
A chapter counts as complete when that file's line count equals the number
of links just extracted for it. Content is not compared, so an output with
the same number of different links is also treated as complete.
"""

import os
from pathlib import Path
from typing import Optional, Sequence, Union

from imgliex.utils.errors import PersistError
from imgliex.utils.logging import get_logger


logger = get_logger(__name__)

READ_CHUNK_SIZE = 65536


class ResumeStore:
    """Per-chapter link files under one output root."""

    def __init__(
        self,
        root: Union[str, Path],
        chapter_dir_prefix: str = "chapter-",
        base_filename: str = "base.txt"
    ):
        self.root = Path(root)
        self.chapter_dir_prefix = chapter_dir_prefix
        self.base_filename = base_filename

    def ensure_root(self) -> Path:
        """Create the output root if needed."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistError(None, self.root, e) from e
        return self.root

    def chapter_dir(self, chapter_number: int) -> Path:
        return self.root / f"{self.chapter_dir_prefix}{chapter_number}"

    def output_path(self, chapter_number: int) -> Path:
        return self.chapter_dir(chapter_number) / self.base_filename

    def prior_count(self, chapter_number: int) -> Optional[int]:
        """
        Count the links already written for a chapter.

        Returns:
            Number of lines in the chapter output, 0 for an empty file, or
            None when the chapter has no output yet

        Raises:
            PersistError: If the output exists but cannot be read
        """
        path = self.output_path(chapter_number)
        if not path.is_file():
            return None

        try:
            return count_lines(path)
        except OSError as e:
            raise PersistError(chapter_number, path, e) from e

    def is_complete(self, chapter_number: int, expected_count: int) -> bool:
        """True iff the chapter output exists with exactly expected_count lines."""
        prior = self.prior_count(chapter_number)
        if prior is None:
            return False
        return prior == expected_count

    def persist(self, chapter_number: int, links: Sequence[str]) -> Path:
        """
        Write a chapter's links, replacing any previous output.

        The file is written next to its final name and swapped in with
        os.replace, so readers never see a half-written output.

        Raises:
            PersistError: On any I/O failure
        """
        path = self.output_path(chapter_number)
        part_path = path.with_name(path.name + ".part")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(part_path, 'w', encoding='utf-8', newline='\n') as f:
                for link in links:
                    f.write(link)
                    f.write('\n')
            os.replace(part_path, path)
        except OSError as e:
            try:
                part_path.unlink()
            except OSError:
                pass
            raise PersistError(chapter_number, path, e) from e

        logger.debug(f"Wrote {len(links)} links for chapter {chapter_number} to {path}")
        return path


def count_lines(path: Union[str, Path]) -> int:
    """
    Count lines the way a line reader would.

    A trailing fragment without a newline counts as a line; an empty file
    has zero lines.
    """
    count = 0
    last_byte = b'\n'

    with open(path, 'rb') as f:
        while True:
            chunk = f.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            count += chunk.count(b'\n')
            last_byte = chunk[-1:]

    if last_byte != b'\n':
        count += 1
    return count
