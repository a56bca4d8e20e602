"""
Command-line entry point for imgliex.
"""

import sys
import argparse
from pathlib import Path
from typing import Optional, List, Tuple

from imgliex.concurrent.models import AdmissionPolicy, RunStatistics
from imgliex.concurrent.processor import ChapterProcessor
from imgliex.concurrent.scheduler import ChapterScheduler, resolve_worker_count
from imgliex.concurrent.thread_safe import ExpectedCountCache
from imgliex.crawlers.base import BaseFetcher
from imgliex.crawlers.extractor import ExtractionRule, LinkExtractor
from imgliex.crawlers.http_client import HTTPClient
from imgliex.data.link_index import LinkIndex
from imgliex.data.resume_store import ResumeStore
from imgliex.utils.console import ConsoleReporter
from imgliex.utils.errors import (
    ConfigurationError,
    ImgliexError,
    MalformedInputError,
    ValidationError
)
from imgliex.utils.logging import get_logger, setup_logging
from config import ConfigManager, SystemConfig


logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


class ImgliexApp:
    """Wires the listing, fetcher, store and scheduler together for one run."""

    def __init__(
        self,
        config: SystemConfig,
        reporter: Optional[ConsoleReporter] = None,
        fetcher: Optional[BaseFetcher] = None
    ):
        """
        Initialize the application.

        Args:
            config: Loaded system configuration
            reporter: Console reporter, or None to create one
            fetcher: Page fetcher, or None to create an HTTPClient from config
        """
        self.config = config
        self.reporter = reporter or ConsoleReporter()
        self._fetcher = fetcher
        self.extractor = LinkExtractor(ExtractionRule(
            tag=config.extraction.tag,
            marker_attribute=config.extraction.marker_attribute,
            marker_value=config.extraction.marker_value,
            source_attribute=config.extraction.source_attribute
        ))

    def output_folder(self, input_path: Path) -> Path:
        """Output folder for a listing: named after the listing file's stem."""
        return Path(self.config.output.output_root) / input_path.stem

    def run(self, input_path: Path, start: int, end: int) -> RunStatistics:
        """
        Load the listing and process the requested chapter range.

        Raises:
            MalformedInputError: If the listing cannot be read
            PersistError: If the output folder cannot be created
            ValidationError: If the range or worker count is invalid
        """
        concurrency = self.config.concurrency
        workers = resolve_worker_count(
            concurrency.max_workers,
            cap=concurrency.worker_cap,
            fallback=concurrency.fallback_workers
        )

        self.reporter.progress("Initializing imgliex")
        store = ResumeStore(
            self.output_folder(input_path),
            chapter_dir_prefix=self.config.output.chapter_dir_prefix,
            base_filename=self.config.output.base_filename
        )
        store.ensure_root()

        self.reporter.progress(f"Loading chapter links from {input_path}")
        index = LinkIndex.load(input_path)
        self.reporter.progress("Loaded chapter links", style="green")
        self.reporter.stat("Total chapters", str(len(index)))
        self.reporter.separator()

        fetcher = self._fetcher or HTTPClient(
            timeout=self.config.fetch.timeout,
            user_agent=self.config.fetch.user_agent,
            pool_size=workers
        )
        cache = ExpectedCountCache()

        def build_processor(statistics):
            return ChapterProcessor(
                fetcher=fetcher,
                extractor=self.extractor,
                store=store,
                cache=cache,
                statistics=statistics,
                on_outcome=self.reporter.chapter_outcome,
                timeout=self.config.fetch.timeout
            )

        scheduler = ChapterScheduler(
            build_processor,
            admission=AdmissionPolicy(concurrency.admission),
            on_not_found=lambda notice: self.reporter.chapter_not_found(notice.chapter_number)
        )

        self.reporter.run_started(start, end, workers, str(store.root))
        try:
            statistics = scheduler.run(start, end, index, workers)
        finally:
            if self._fetcher is None:
                fetcher.close()

        self.reporter.summary(statistics, str(store.root))
        return statistics


def create_cli_parser() -> argparse.ArgumentParser:
    """Create command-line interface parser."""
    parser = argparse.ArgumentParser(
        prog='imgliex',
        description='imgliex - High-Performance Manga Image Link Extractor',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Process chapters 1-100 from manga.txt
  %(prog)s manga.txt 1 100

  # Process chapters 50-75
  %(prog)s chapters.txt 50 75

  # Four workers, reference batch admission, output under ./out
  %(prog)s manga.txt 1 20 --workers 4 --admission batched -o out
        """
    )

    parser.add_argument('input', type=str, help='Chapter listing file')
    # Parsed as text so a bad value gets our own message
    parser.add_argument('start', type=str, help='First chapter number (positive integer)')
    parser.add_argument('end', type=str, help='Last chapter number (positive integer, >= start)')

    parser.add_argument(
        '--config', '-c',
        type=str,
        help='Path to configuration file (default: imgliex.json if present)'
    )

    parser.add_argument(
        '--workers', '-w',
        type=int,
        help='Number of chapters processed in parallel (default: min(8, CPU count))'
    )

    parser.add_argument(
        '--output-dir', '-o',
        type=str,
        help='Directory in which the per-listing output folder is created (default: .)'
    )

    parser.add_argument(
        '--timeout',
        type=float,
        help='Request timeout in seconds (default: 30)'
    )

    parser.add_argument(
        '--admission',
        type=str,
        choices=[policy.value for policy in AdmissionPolicy],
        help='Worker admission policy (default: pool)'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Override log level from configuration'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output (equivalent to --log-level DEBUG)'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file (rotated daily)'
    )

    return parser


def parse_chapter_range(start: str, end: str) -> Tuple[int, int]:
    """
    Validate the requested chapter range.

    Raises:
        ValidationError: If either bound is not an integer, not positive, or
            start is greater than end
    """
    try:
        start_chapter = int(start)
        end_chapter = int(end)
    except ValueError:
        raise ValidationError("Invalid chapter number format!", {"start": start, "end": end})

    if start_chapter > end_chapter:
        raise ValidationError("Start chapter cannot be greater than end chapter!")

    if start_chapter < 1 or end_chapter < 1:
        raise ValidationError("Chapter numbers must be positive!")

    return start_chapter, end_chapter


def load_configuration(args: argparse.Namespace) -> SystemConfig:
    """Load configuration and apply command-line overrides."""
    if args.config:
        if not Path(args.config).exists():
            raise ConfigurationError(f"Configuration file '{args.config}' not found!")
        config = ConfigManager(args.config).load_config()
    else:
        config = ConfigManager().load_config()

    if args.workers is not None:
        if args.workers < 1:
            raise ValidationError("Worker count must be at least 1!")
        config.concurrency.max_workers = args.workers
    if args.output_dir:
        config.output.output_root = args.output_dir
    if args.timeout is not None:
        if args.timeout <= 0:
            raise ValidationError("Timeout must be positive!")
        config.fetch.timeout = args.timeout
    if args.admission:
        config.concurrency.admission = args.admission
    if args.verbose:
        config.log_level = 'DEBUG'
    elif args.log_level:
        config.log_level = args.log_level
    if args.log_file:
        config.log_file = args.log_file

    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with command-line interface; returns the exit code."""
    parser = create_cli_parser()
    args = parser.parse_args(argv)
    reporter = ConsoleReporter()

    reporter.header()

    try:
        start, end = parse_chapter_range(args.start, args.end)
    except ValidationError as e:
        reporter.error(e.message)
        parser.print_usage()
        reporter.separator("=")
        return EXIT_FAILURE

    try:
        config = load_configuration(args)
    except ImgliexError as e:
        reporter.error(e.message)
        return EXIT_FAILURE

    setup_logging(config.log_level, config.log_file, config.log_retention_days)

    input_path = Path(args.input)
    if not input_path.is_file():
        reporter.error(f"Input file '{args.input}' not found!")
        return EXIT_FAILURE

    try:
        ImgliexApp(config, reporter=reporter).run(input_path, start, end)
    except MalformedInputError as e:
        logger.error(f"Listing load failed: {e}")
        reporter.error("Failed to load chapter links!")
        return EXIT_FAILURE
    except ImgliexError as e:
        logger.error(f"Run aborted: {e}")
        reporter.error(e.message)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        reporter.warning("Interrupted")
        return EXIT_INTERRUPTED

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
