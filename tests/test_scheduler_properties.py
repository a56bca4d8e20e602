"""
Property-based tests for chapter scheduling: range filtering, failure
isolation, the concurrency bound and idempotent resume.
"""

import _thread
import tempfile
import threading
import time
from pathlib import Path
from unittest.mock import patch

import pytest
from hypothesis import given, settings, strategies as st

from imgliex.concurrent.models import AdmissionPolicy, OutcomeKind
from imgliex.concurrent.processor import ChapterProcessor
from imgliex.concurrent.scheduler import ChapterScheduler, resolve_worker_count
from imgliex.concurrent.thread_safe import ExpectedCountCache
from imgliex.crawlers.extractor import LinkExtractor
from imgliex.data.link_index import LinkIndex
from imgliex.data.resume_store import ResumeStore
from imgliex.utils.errors import FetchError, ValidationError

from conftest import FakeFetcher, image_markup


def chapter_url(number):
    return f"https://example.com/manga/chapter-{number}"


def build_index(numbers):
    lines = []
    for number in numbers:
        lines.append(f"# Chapter {number}\n")
        lines.append(f"{chapter_url(number)}\n")
    return LinkIndex.parse(lines)


def pages_for(numbers, links_per_chapter=2):
    return {
        chapter_url(number): image_markup(
            [f"https://cdn/{number}/{page}.jpg" for page in range(links_per_chapter)]
        )
        for number in numbers
    }


def make_scheduler(fetcher, root, admission=AdmissionPolicy.POOL, cache=None, not_found=None):
    store = ResumeStore(root)
    cache = cache if cache is not None else ExpectedCountCache()

    def factory(statistics):
        return ChapterProcessor(fetcher, LinkExtractor(), store, cache, statistics)

    return ChapterScheduler(factory, admission=admission, on_not_found=not_found), store


@st.composite
def range_scenario_strategy(draw):
    """Generate a listing, a requested range and a worker count."""
    numbers = draw(st.lists(st.integers(min_value=1, max_value=40), min_size=0, max_size=15, unique=True))
    start = draw(st.integers(min_value=1, max_value=40))
    end = draw(st.integers(min_value=start, max_value=45))
    workers = draw(st.integers(min_value=1, max_value=6))
    return numbers, start, end, workers


class TestRangeFiltering:
    """Only chapters inside the range and present in the listing run."""

    def test_range_with_gap(self, output_dir):
        fetcher = FakeFetcher(pages_for([5, 7]))
        not_found = []
        scheduler, store = make_scheduler(fetcher, output_dir, not_found=not_found.append)

        result = scheduler.run(5, 8, build_index([5, 7]), 2)

        assert sorted(result.outcomes) == [5, 7]
        assert result.processed == 2
        assert result.not_found == (6, 8)
        assert [notice.chapter_number for notice in not_found] == [6, 8]
        assert not store.chapter_dir(6).exists()

    @given(scenario=range_scenario_strategy())
    def test_outcomes_cover_exactly_listed_chapters_in_range(self, scenario):
        numbers, start, end, workers = scenario
        fetcher = FakeFetcher(pages_for(numbers))

        with tempfile.TemporaryDirectory() as temp_dir:
            scheduler, _ = make_scheduler(fetcher, Path(temp_dir))
            result = scheduler.run(start, end, build_index(numbers), workers)

        expected = {n for n in numbers if start <= n <= end}
        assert set(result.outcomes) == expected
        assert result.total == len(expected)
        assert set(result.not_found) == set(range(start, end + 1)) - expected
        assert set(fetcher.calls) == {chapter_url(n) for n in expected}


class TestFailureIsolation:
    """One chapter failing leaves the others untouched."""

    def test_single_failure(self, output_dir):
        pages = pages_for([1, 2, 3])
        pages[chapter_url(2)] = FetchError(chapter_url(2), "503 Server Error")
        scheduler, store = make_scheduler(FakeFetcher(pages), output_dir)

        result = scheduler.run(1, 3, build_index([1, 2, 3]), 3)

        assert result.errored == 1
        assert result.processed == 2
        assert result.outcomes[2].kind is OutcomeKind.FAILED
        assert [outcome.chapter_number for outcome in result.failures()] == [2]
        assert store.prior_count(1) == 2
        assert store.prior_count(3) == 2
        assert store.prior_count(2) is None

    @given(
        numbers=st.lists(st.integers(min_value=1, max_value=30), min_size=1, max_size=12, unique=True),
        data=st.data()
    )
    def test_counts_partition_outcomes(self, numbers, data):
        failing = data.draw(st.sets(st.sampled_from(numbers)))
        pages = pages_for(numbers)
        for number in failing:
            pages[chapter_url(number)] = FetchError(chapter_url(number), "timed out")

        with tempfile.TemporaryDirectory() as temp_dir:
            scheduler, _ = make_scheduler(FakeFetcher(pages), Path(temp_dir))
            result = scheduler.run(min(numbers), max(numbers), build_index(numbers), 4)

        assert result.errored == len(failing)
        assert result.processed == len(numbers) - len(failing)
        assert result.skipped == 0


class TestConcurrencyBound:
    """No more than max_parallel chapters are ever in flight."""

    @pytest.mark.parametrize("admission", [AdmissionPolicy.POOL, AdmissionPolicy.BATCHED])
    @pytest.mark.parametrize("workers", [1, 2, 3])
    def test_peak_in_flight_never_exceeds_workers(self, output_dir, admission, workers):
        numbers = list(range(1, 11))
        active = []
        lock = threading.Lock()
        observed_peak = [0]
        markup = image_markup(["https://cdn/1.jpg"])

        def slow_page(url):
            with lock:
                active.append(url)
                observed_peak[0] = max(observed_peak[0], len(active))
            time.sleep(0.01)
            with lock:
                active.remove(url)
            return markup

        fetcher = FakeFetcher({chapter_url(n): slow_page for n in numbers})
        scheduler, _ = make_scheduler(fetcher, output_dir, admission=admission)

        result = scheduler.run(1, 10, build_index(numbers), workers)

        assert result.processed == 10
        assert 1 <= result.peak_in_flight <= workers
        assert observed_peak[0] <= workers

    def test_batched_admission_waits_for_whole_batch(self, output_dir):
        numbers = [1, 2, 3, 4]
        started = []
        release_first_batch = threading.Event()
        markup = image_markup(["https://cdn/1.jpg"])

        def page(url):
            started.append(url)
            if url == chapter_url(1):
                # Chapter 3 must not start while chapter 1 is still running
                release_first_batch.wait(timeout=0.2)
                assert chapter_url(3) not in started
            return markup

        fetcher = FakeFetcher({chapter_url(n): page for n in numbers})
        scheduler, _ = make_scheduler(fetcher, output_dir, admission=AdmissionPolicy.BATCHED)

        result = scheduler.run(1, 4, build_index(numbers), 2)

        assert result.processed == 4
        assert result.errored == 0


class TestIdempotentResume:
    """A second run over unchanged pages only skips."""

    def test_end_to_end_example(self, output_dir):
        pages = {
            chapter_url(1): image_markup(["https://cdn/a.jpg", "https://cdn/b.jpg", "https://cdn/c.jpg"]),
            chapter_url(2): "<html><body>No images</body></html>",
        }
        scheduler, store = make_scheduler(FakeFetcher(pages), output_dir)

        result = scheduler.run(1, 2, build_index([1, 2]), 4)

        assert result.processed == 2
        assert result.skipped == 0
        assert result.errored == 0
        assert store.prior_count(1) == 3
        assert store.prior_count(2) == 0

    @settings(max_examples=10)
    @given(numbers=st.lists(st.integers(min_value=1, max_value=20), min_size=1, max_size=8, unique=True))
    def test_second_run_processes_nothing(self, numbers):
        pages = pages_for(numbers, links_per_chapter=3)

        with tempfile.TemporaryDirectory() as temp_dir:
            first, _ = make_scheduler(FakeFetcher(pages), Path(temp_dir))
            first_result = first.run(min(numbers), max(numbers), build_index(numbers), 3)

            second, _ = make_scheduler(FakeFetcher(pages), Path(temp_dir))
            second_result = second.run(min(numbers), max(numbers), build_index(numbers), 3)

        assert first_result.processed == len(numbers)
        assert second_result.processed == 0
        assert second_result.skipped == len(numbers)

    def test_shared_cache_skips_without_fetching(self, output_dir):
        numbers = [1, 2, 3]
        cache = ExpectedCountCache()
        pages = pages_for(numbers)
        make_scheduler(FakeFetcher(pages), output_dir, cache=cache)[0].run(1, 3, build_index(numbers), 2)

        fetcher = FakeFetcher(pages)
        scheduler, _ = make_scheduler(fetcher, output_dir, cache=cache)
        result = scheduler.run(1, 3, build_index(numbers), 2)

        assert result.skipped == 3
        assert fetcher.calls == []


class TestInterruption:
    """A keyboard interrupt stops dispatch instead of draining the queue."""

    @pytest.mark.parametrize("admission", [AdmissionPolicy.POOL, AdmissionPolicy.BATCHED])
    def test_interrupt_cancels_queued_chapters(self, output_dir, admission):
        numbers = list(range(1, 31))
        markup = image_markup(["https://cdn/1.jpg"])

        def slow_page(url):
            time.sleep(0.1)
            return markup

        fetcher = FakeFetcher({chapter_url(n): slow_page for n in numbers})
        scheduler, store = make_scheduler(fetcher, output_dir, admission=admission)
        timer = threading.Timer(0.15, _thread.interrupt_main)

        started = time.perf_counter()
        timer.start()
        try:
            with pytest.raises(KeyboardInterrupt):
                scheduler.run(1, 30, build_index(numbers), 1)
        finally:
            timer.cancel()
            timer.join()
        elapsed = time.perf_counter() - started

        assert len(fetcher.calls) < 10
        assert elapsed < 2.0
        assert not store.output_path(30).exists()


class TestRunValidation:
    """Arguments rejected before any work starts."""

    @pytest.mark.parametrize("start,end,workers", [
        (0, 5, 2),
        (5, 4, 2),
        (-1, -1, 2),
        (1, 5, 0),
    ])
    def test_invalid_arguments(self, output_dir, start, end, workers):
        fetcher = FakeFetcher()
        scheduler, _ = make_scheduler(fetcher, output_dir)

        with pytest.raises(ValidationError):
            scheduler.run(start, end, build_index([1, 2, 3]), workers)

        assert fetcher.calls == []

    def test_empty_listing_reports_every_chapter_missing(self, output_dir):
        scheduler, _ = make_scheduler(FakeFetcher(), output_dir)

        result = scheduler.run(1, 3, LinkIndex(), 2)

        assert result.total == 0
        assert result.not_found == (1, 2, 3)
        assert result.average_seconds_per_processed is None


class TestResolveWorkerCount:
    """Worker count detection."""

    @pytest.mark.parametrize("detected,expected", [
        (None, 4),
        (0, 4),
        (1, 1),
        (6, 6),
        (8, 8),
        (16, 8),
    ])
    def test_detected(self, detected, expected):
        with patch("imgliex.concurrent.scheduler.psutil.cpu_count", return_value=detected):
            assert resolve_worker_count() == expected

    def test_explicit_value_wins(self):
        with patch("imgliex.concurrent.scheduler.psutil.cpu_count", return_value=32):
            assert resolve_worker_count(12) == 12

    def test_custom_cap_and_fallback(self):
        with patch("imgliex.concurrent.scheduler.psutil.cpu_count", return_value=None):
            assert resolve_worker_count(cap=2, fallback=3) == 3
        with patch("imgliex.concurrent.scheduler.psutil.cpu_count", return_value=16):
            assert resolve_worker_count(cap=2, fallback=3) == 2

    def test_explicit_value_must_be_positive(self):
        with pytest.raises(ValidationError):
            resolve_worker_count(0)
