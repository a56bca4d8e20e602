"""
Chapter scheduler: dispatches a chapter range onto a bounded worker pool.
"""

from concurrent.futures import ThreadPoolExecutor, Future, wait
from typing import Callable, List, Optional

import psutil

from imgliex.data.link_index import LinkIndex
from imgliex.data.models import ChapterLink
from imgliex.utils.errors import NotFoundInIndex, ValidationError
from imgliex.utils.logging import get_logger
from .models import AdmissionPolicy, ChapterOutcome, RunStatistics, StatisticsCollector
from .processor import ChapterProcessor
from .thread_safe import HighWaterCounter


logger = get_logger(__name__)

DEFAULT_WORKER_CAP = 8
DEFAULT_FALLBACK_WORKERS = 4
DRAIN_POLL_SECONDS = 0.1

ProcessorFactory = Callable[[StatisticsCollector], ChapterProcessor]
NotFoundListener = Callable[[NotFoundInIndex], None]


def resolve_worker_count(
    configured: Optional[int] = None,
    cap: int = DEFAULT_WORKER_CAP,
    fallback: int = DEFAULT_FALLBACK_WORKERS
) -> int:
    """
    Decide how many chapters may be in flight at once.

    An explicitly configured value wins. Otherwise the detected logical CPU
    count is used, capped to keep the load on the remote server modest, with
    a fixed fallback when detection reports nothing.

    Args:
        configured: Explicit worker count, or None to detect
        cap: Upper bound for the detected value
        fallback: Value used when detection yields 0 or None

    Returns:
        Worker count (at least 1)
    """
    if configured is not None:
        if configured < 1:
            raise ValidationError("Worker count must be at least 1", {"workers": configured})
        return configured

    detected = psutil.cpu_count(logical=True) or 0
    workers = min(cap, detected)
    if workers <= 0:
        workers = fallback
    logger.debug(f"Detected {detected} logical CPUs, using {workers} workers")
    return workers


class ChapterScheduler:
    """Drives a ChapterProcessor over a chapter range.

    Chapters are dispatched in increasing order; at most ``max_parallel`` are
    in flight at any time. With the POOL policy a worker picks up the next
    chapter as soon as it finishes one. With the BATCHED policy dispatch
    pauses once the cap is reached until the whole batch has finished.
    """

    def __init__(
        self,
        processor_factory: ProcessorFactory,
        admission: AdmissionPolicy = AdmissionPolicy.POOL,
        on_not_found: Optional[NotFoundListener] = None
    ):
        """
        Initialize scheduler.

        Args:
            processor_factory: Builds the processor for a run, given the
                statistics collector it must publish into
            admission: Admission policy for the worker pool
            on_not_found: Optional callback for chapters missing from the index
        """
        self.processor_factory = processor_factory
        self.admission = AdmissionPolicy(admission)
        self.on_not_found = on_not_found

    def run(self, start: int, end: int, index: LinkIndex, max_parallel: int) -> RunStatistics:
        """
        Process every chapter in ``start..end`` (inclusive) found in the index.

        Args:
            start: First chapter number
            end: Last chapter number
            index: Chapter listing
            max_parallel: Maximum chapters in flight

        Returns:
            Final statistics, taken after every worker has finished

        Raises:
            ValidationError: If the range or the worker count is invalid
        """
        self._validate(start, end, max_parallel)

        statistics = StatisticsCollector()
        processor = self.processor_factory(statistics)
        in_flight = HighWaterCounter()

        logger.info(
            f"Processing chapters {start}-{end} with {max_parallel} workers "
            f"({self.admission.value} admission)"
        )

        def work(link: ChapterLink) -> ChapterOutcome:
            in_flight.increment()
            try:
                return processor.process(link)
            finally:
                in_flight.decrement()

        with ThreadPoolExecutor(max_workers=max_parallel, thread_name_prefix="chapter") as executor:
            submitted: List[Future] = []
            batch: List[Future] = []

            try:
                for chapter_number in range(start, end + 1):
                    link = index.get(chapter_number)
                    if link is None:
                        self._report_not_found(chapter_number, statistics)
                        continue

                    future = executor.submit(work, link)
                    submitted.append(future)
                    batch.append(future)

                    if self.admission is AdmissionPolicy.BATCHED and len(batch) >= max_parallel:
                        self._drain(batch)
                        batch = []

                self._drain(batch)
            except BaseException:
                # Only chapters already running are allowed to finish
                cancelled = sum(1 for future in submitted if future.cancel())
                logger.info(f"Run interrupted, cancelled {cancelled} queued chapters")
                raise

        statistics.finish()
        result = statistics.snapshot(peak_in_flight=in_flight.get_peak())

        logger.info(
            f"Run finished: processed={result.processed}, skipped={result.skipped}, "
            f"errored={result.errored}, not_found={len(result.not_found)}, "
            f"elapsed={result.elapsed_seconds:.2f}s"
        )
        return result

    def _drain(self, futures: List[Future]) -> None:
        """Block until every future is done; processors publish their own outcomes."""
        pending = set(futures)
        # Short waits keep the main thread responsive to KeyboardInterrupt
        while pending:
            _, pending = wait(pending, timeout=DRAIN_POLL_SECONDS)
        for future in futures:
            error = future.exception()
            if error is not None:
                logger.error(f"Chapter worker raised outside its outcome handling: {error!r}")

    def _validate(self, start: int, end: int, max_parallel: int) -> None:
        errors = []
        if start < 1 or end < 1:
            errors.append("Chapter numbers must be positive")
        if start > end:
            errors.append("Start chapter cannot be greater than end chapter")
        if max_parallel < 1:
            errors.append("max_parallel must be at least 1")
        if errors:
            raise ValidationError(
                "; ".join(errors),
                {"start": start, "end": end, "max_parallel": max_parallel}
            )

    def _report_not_found(self, chapter_number: int, statistics: StatisticsCollector) -> None:
        notice = NotFoundInIndex(chapter_number)
        logger.info(notice.message)
        statistics.record_not_found(chapter_number)

        if self.on_not_found is None:
            return
        try:
            self.on_not_found(notice)
        except Exception as e:
            logger.error(f"Not-found listener failed for chapter {chapter_number}: {e}")
