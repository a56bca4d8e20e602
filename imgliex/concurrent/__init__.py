"""
Concurrent chapter processing.

Main Components:
- ChapterProcessor: runs one chapter to a terminal outcome
- ChapterScheduler: dispatches a chapter range onto a bounded worker pool
- StatisticsCollector / RunStatistics: thread-safe outcome accounting
- ExpectedCountCache: per-run memo of extracted link counts
"""

from .models import (
    AdmissionPolicy,
    ChapterOutcome,
    OutcomeKind,
    RunStatistics,
    StatisticsCollector
)

from .thread_safe import (
    ThreadSafeCounter,
    HighWaterCounter,
    ExpectedCountCache
)

from .processor import ChapterProcessor
from .scheduler import ChapterScheduler, resolve_worker_count

__all__ = [
    # Core models
    'AdmissionPolicy',
    'ChapterOutcome',
    'OutcomeKind',
    'RunStatistics',
    'StatisticsCollector',

    # Thread-safe utilities
    'ThreadSafeCounter',
    'HighWaterCounter',
    'ExpectedCountCache',

    # Main components
    'ChapterProcessor',
    'ChapterScheduler',
    'resolve_worker_count'
]
