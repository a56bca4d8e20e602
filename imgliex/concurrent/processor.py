"""
Single-chapter pipeline: fetch, extract, resume check, persist.
"""

import threading
from typing import Callable, List, Optional

from imgliex.crawlers.base import BaseFetcher
from imgliex.crawlers.extractor import LinkExtractor
from imgliex.data.models import ChapterLink, ExtractedLinkSet
from imgliex.data.resume_store import ResumeStore
from imgliex.utils.errors import ImgliexError, handle_error
from imgliex.utils.logging import get_logger, get_event_logger
from .models import ChapterOutcome, StatisticsCollector
from .thread_safe import ExpectedCountCache


logger = get_logger(__name__)
events = get_event_logger("imgliex.events")

OutcomeListener = Callable[[ChapterOutcome], None]


class ChapterProcessor:
    """Runs one chapter to a terminal outcome and publishes it.

    Errors raised while handling a chapter never leave ``process``; they are
    turned into a FAILED outcome for that chapter only. No retries are made.
    """

    def __init__(
        self,
        fetcher: BaseFetcher,
        extractor: LinkExtractor,
        store: ResumeStore,
        cache: ExpectedCountCache,
        statistics: StatisticsCollector,
        on_outcome: Optional[OutcomeListener] = None,
        timeout: Optional[float] = None
    ):
        """
        Initialize chapter processor.

        Args:
            fetcher: Page fetcher
            extractor: Link extractor applied to fetched markup
            store: Output store used for the resume decision and persistence
            cache: Counts already computed in this run
            statistics: Shared collector the outcome is recorded into
            on_outcome: Optional callback invoked with every outcome
            timeout: Fetch timeout in seconds, or None for the fetcher default
        """
        self.fetcher = fetcher
        self.extractor = extractor
        self.store = store
        self.cache = cache
        self.statistics = statistics
        self.on_outcome = on_outcome
        self.timeout = timeout
        self._listener_lock = threading.Lock()

    def process(self, link: ChapterLink) -> ChapterOutcome:
        """
        Process a chapter and publish its outcome.

        Args:
            link: Chapter to process

        Returns:
            The published outcome
        """
        try:
            outcome = self._run(link)
        except ImgliexError as e:
            logger.info(f"Chapter {link.chapter_number} failed: {e}")
            outcome = ChapterOutcome.failed(link.chapter_number, str(e))
        except Exception as e:
            handle_error(
                e, logger,
                {"chapter_number": link.chapter_number, "url": link.source_url},
                reraise=False
            )
            outcome = ChapterOutcome.failed(link.chapter_number, f"Unexpected error: {e}")

        self._publish(outcome)
        return outcome

    def _run(self, link: ChapterLink) -> ChapterOutcome:
        number = link.chapter_number
        link_set: Optional[ExtractedLinkSet] = None

        expected_count = self.cache.get(number)
        if expected_count is None:
            link_set = self._fetch_links(link)
            expected_count = link_set.extracted_count
            self.cache.put(number, expected_count)
        else:
            logger.debug(f"Chapter {number}: using count {expected_count} computed earlier in this run")

        if self.store.is_complete(number, expected_count):
            return ChapterOutcome.skipped(number, expected_count)

        # A cached count alone cannot restore a missing output
        if link_set is None:
            link_set = self._fetch_links(link)
            self.cache.put(number, link_set.extracted_count)

        self.store.persist(number, link_set.links)
        return ChapterOutcome.processed(number, link_set.extracted_count)

    def _fetch_links(self, link: ChapterLink) -> ExtractedLinkSet:
        markup = self.fetcher.fetch(link.source_url, self.timeout)
        links: List[str] = self.extractor.extract(markup)
        logger.debug(f"Chapter {link.chapter_number}: extracted {len(links)} links from {link.source_url}")
        return ExtractedLinkSet(chapter_number=link.chapter_number, links=tuple(links))

    def _publish(self, outcome: ChapterOutcome) -> None:
        self.statistics.record(outcome)
        events.info(
            "chapter_outcome",
            chapter=outcome.chapter_number,
            outcome=outcome.kind.value,
            count=outcome.count,
            reason=outcome.reason
        )

        if self.on_outcome is None:
            return
        with self._listener_lock:
            try:
                self.on_outcome(outcome)
            except Exception as e:
                logger.error(f"Outcome listener failed for chapter {outcome.chapter_number}: {e}")
