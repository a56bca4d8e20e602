"""
Data models for concurrent chapter processing.
"""

import threading
import time
from types import MappingProxyType
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, List, Tuple
from enum import Enum


class OutcomeKind(Enum):
    """Terminal state of one chapter."""
    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"


class AdmissionPolicy(Enum):
    """How chapters are admitted to the worker pool."""
    POOL = "pool"
    BATCHED = "batched"


@dataclass(frozen=True)
class ChapterOutcome:
    """Result of processing one chapter."""
    chapter_number: int
    kind: OutcomeKind
    count: int = 0
    reason: Optional[str] = None

    @classmethod
    def processed(cls, chapter_number: int, count: int) -> "ChapterOutcome":
        return cls(chapter_number=chapter_number, kind=OutcomeKind.PROCESSED, count=count)

    @classmethod
    def skipped(cls, chapter_number: int, count: int) -> "ChapterOutcome":
        return cls(chapter_number=chapter_number, kind=OutcomeKind.SKIPPED, count=count)

    @classmethod
    def failed(cls, chapter_number: int, reason: str) -> "ChapterOutcome":
        return cls(chapter_number=chapter_number, kind=OutcomeKind.FAILED, reason=reason)

    @property
    def is_processed(self) -> bool:
        return self.kind is OutcomeKind.PROCESSED

    @property
    def is_skipped(self) -> bool:
        return self.kind is OutcomeKind.SKIPPED

    @property
    def is_failed(self) -> bool:
        return self.kind is OutcomeKind.FAILED


@dataclass(frozen=True)
class RunStatistics:
    """Final, immutable statistics of one run."""
    processed: int = 0
    skipped: int = 0
    errored: int = 0
    not_found: Tuple[int, ...] = field(default_factory=tuple)
    outcomes: Mapping[int, ChapterOutcome] = field(default_factory=dict)
    elapsed_seconds: float = 0.0
    peak_in_flight: int = 0

    @property
    def total(self) -> int:
        """Chapters that reached a terminal outcome."""
        return self.processed + self.skipped + self.errored

    @property
    def average_seconds_per_processed(self) -> Optional[float]:
        if self.processed == 0:
            return None
        return self.elapsed_seconds / self.processed

    def failures(self) -> List[ChapterOutcome]:
        return [outcome for _, outcome in sorted(self.outcomes.items()) if outcome.is_failed]


class StatisticsCollector:
    """Thread-safe accumulator for chapter outcomes.

    All counters share one lock so a snapshot is always consistent.
    """

    def __init__(self):
        """Initialize statistics collector."""
        self._lock = threading.Lock()
        self._processed = 0
        self._skipped = 0
        self._errored = 0
        self._not_found: List[int] = []
        self._outcomes: Dict[int, ChapterOutcome] = {}
        self._started = time.perf_counter()
        self._finished: Optional[float] = None

    def record(self, outcome: ChapterOutcome) -> None:
        """
        Count an outcome under exactly one of processed/skipped/errored.

        Args:
            outcome: Terminal outcome of a chapter
        """
        with self._lock:
            if outcome.kind is OutcomeKind.PROCESSED:
                self._processed += 1
            elif outcome.kind is OutcomeKind.SKIPPED:
                self._skipped += 1
            else:
                self._errored += 1
            self._outcomes[outcome.chapter_number] = outcome

    def record_not_found(self, chapter_number: int) -> None:
        """Note a requested chapter that is missing from the listing."""
        with self._lock:
            self._not_found.append(chapter_number)

    def finish(self) -> None:
        """Stop the elapsed-time clock."""
        with self._lock:
            if self._finished is None:
                self._finished = time.perf_counter()

    def snapshot(self, peak_in_flight: int = 0) -> RunStatistics:
        """
        Get an immutable copy of the current statistics.

        Returns:
            RunStatistics with the counters as of this call
        """
        with self._lock:
            end = self._finished if self._finished is not None else time.perf_counter()
            return RunStatistics(
                processed=self._processed,
                skipped=self._skipped,
                errored=self._errored,
                not_found=tuple(self._not_found),
                outcomes=MappingProxyType(dict(self._outcomes)),
                elapsed_seconds=end - self._started,
                peak_in_flight=peak_in_flight
            )
