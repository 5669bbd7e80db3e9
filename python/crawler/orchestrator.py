"""
Orchestrator - Main entry point for a crawl run.

Drives the run-level stages through a ProgressAggregator:
- INITIALIZING: set up the hash cache (and sweep it once per process)
- FETCHING_FILES: crawl the workspace, skipping unchanged files
- later stages: handed to caller-supplied handlers (document generation
  lives outside this package); stages without a handler complete at once
- COMPLETED: terminal, weight zero
"""

import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from .config import get_config, CrawlerConfig, set_config
from .errors import CrawlerError, OperationCancelledError
from .hasher import ChangeDetector
from .models import CrawlResult
from .progress import CancellationToken, ProcessStage, ProgressAggregator, ProgressSink
from .scanner import DirectoryCrawler
from .store import HashStore


logger = logging.getLogger(__name__)


# Cache files already swept by this process
_swept_caches: set[Path] = set()

# Stages between fetching and completion, in execution order
DOWNSTREAM_STAGES: List[ProcessStage] = [
    ProcessStage.IDENTIFYING_ABSTRACTIONS,
    ProcessStage.ANALYZING_RELATIONSHIPS,
    ProcessStage.ORDERING_CHAPTERS,
    ProcessStage.WRITING_CHAPTERS,
    ProcessStage.COMBINING_TUTORIAL,
]

StageHandler = Callable[[CrawlResult, ProgressAggregator], Awaitable[None]]


def shorten_path(path: str, limit: int = 30) -> str:
    """Keep the tail of long paths for progress messages."""
    if len(path) <= limit:
        return path
    return "..." + path[-limit:]


class Orchestrator:
    """
    Runs a crawl as the FETCHING_FILES stage of a larger run.

    Owns the hash store, change detector and crawler for one config. The
    progress aggregator is passed in so the host can share it with the
    stages that follow.
    """

    def __init__(
        self,
        config: Optional[CrawlerConfig] = None,
        progress: Optional[ProgressAggregator] = None,
    ):
        self.config = config or get_config()
        if config:
            set_config(config)

        self.progress = progress or ProgressAggregator()
        self._store = HashStore()
        self._store.initialize(self.config.storage_root)
        self._detector = ChangeDetector(self._store, self.config)
        self._crawler = DirectoryCrawler(self.config, self._detector)

    @property
    def detector(self) -> ChangeDetector:
        return self._detector

    def sweep_cache(self, force: bool = False) -> int:
        """
        Remove stale hash cache entries, once per process per cache file.

        Returns:
            Number of entries removed (0 if already swept)
        """
        cache_path = self._store.path
        if not force and cache_path in _swept_caches:
            return 0
        removed = self._detector.sweep(self.config.cache_max_age_seconds)
        _swept_caches.add(cache_path)
        return removed

    async def fetch_files(
        self,
        root_dir: Path | str,
        incremental: Optional[bool] = None,
    ) -> CrawlResult:
        """
        Crawl root_dir as the FETCHING_FILES stage.

        Raises:
            OperationCancelledError: cancellation observed before or during the crawl
            NotFoundError, EmptyResultError: from the crawler
        """
        progress = self.progress
        progress.start_stage(ProcessStage.FETCHING_FILES)
        logger.info(f"Fetching directory: {root_dir}...")

        if incremental is None:
            incremental = self.config.incremental

        def on_file(current: int, total: int, file_path: str) -> None:
            percent = round(current / total * 100) if total else 100
            progress.update_stage_progress(
                percent,
                f"Scanning files: {percent}% ({current}/{total}) - {shorten_path(file_path)}",
            )
            progress.raise_if_cancelled()

        try:
            progress.update_stage_progress(0, "Scanning directory...")
            progress.raise_if_cancelled()

            result = await self._crawler.crawl(
                root_dir,
                include_patterns=self.config.include_patterns,
                exclude_patterns=self.config.exclude_patterns,
                max_file_size=self.config.max_file_size,
                use_relative_paths=self.config.use_relative_paths,
                progress_callback=on_file,
                incremental=incremental,
                workspace_id=self.config.workspace_id,
            )
        except OperationCancelledError:
            logger.info("File fetching cancelled")
            raise
        except Exception as e:
            logger.error(f"Error fetching files: {e}")
            raise

        logger.info(f"Fetched {len(result.files)} files.")
        progress.update_stage_progress(100, f"Found {len(result.files)} files to process")
        progress.complete_stage()
        return result

    async def run(
        self,
        root_dir: Path | str,
        handlers: Optional[Dict[ProcessStage, StageHandler]] = None,
        token: Optional[CancellationToken] = None,
        sink: Optional[ProgressSink] = None,
        force: bool = False,
    ) -> CrawlResult:
        """
        Run every stage from INITIALIZING to COMPLETED.

        Args:
            root_dir: Workspace directory to crawl
            handlers: Optional async handlers for the downstream stages
            token: Cancellation token polled between and within stages
            sink: Progress sink receiving (increment, message)
            force: Ignore the hash cache (non-incremental crawl)

        Returns:
            The crawl result handed to the downstream stages
        """
        start_time = time.monotonic()
        handlers = handlers or {}
        progress = self.progress

        progress.reset()
        progress.set_progress_objects(sink, token)
        progress.raise_if_cancelled()

        progress.start_stage(ProcessStage.INITIALIZING)
        progress.update_stage_progress(50, "Loading configuration...")
        self.sweep_cache()
        progress.update_stage_progress(100, "Configuration loaded")
        progress.complete_stage()

        incremental = False if force else self.config.incremental
        result = await self.fetch_files(root_dir, incremental=incremental)

        for stage in DOWNSTREAM_STAGES:
            progress.raise_if_cancelled()
            progress.start_stage(stage)
            handler = handlers.get(stage)
            if handler is not None:
                await handler(result, progress)
            else:
                logger.debug(f"No handler for stage: {stage.value}")
            progress.complete_stage()

        progress.start_stage(ProcessStage.COMPLETED)
        progress.update_stage_progress(100, "Run completed")

        logger.info(f"Run complete in {time.monotonic() - start_time:.1f}s: {result}")
        return result

    def close(self):
        """Clean up resources."""
        self._crawler.close()


async def run_crawl(
    root_dir: Path | str,
    config: Optional[CrawlerConfig] = None,
    force: bool = False,
) -> CrawlResult:
    """
    Convenience function to run a full crawl.

    Usage:
        result = await run_crawl("~/project")
        print(result)
    """
    orchestrator = Orchestrator(config)
    try:
        return await orchestrator.run(root_dir, force=force)
    finally:
        orchestrator.close()


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(description="Incremental workspace crawler")
    parser.add_argument("root", help="Directory to crawl")
    parser.add_argument("--include", action="append", help="Glob of files to include (repeatable)")
    parser.add_argument("--exclude", action="append", help="Glob of paths to exclude (repeatable)")
    parser.add_argument("--max-file-size", type=int, help="Skip files larger than this (bytes)")
    parser.add_argument("--absolute-paths", action="store_true", help="Report absolute paths")
    parser.add_argument("--incremental", action="store_true", help="Skip unchanged files")
    parser.add_argument("--force", action="store_true", help="Ignore the hash cache")
    parser.add_argument("--workspace-id", help="Hash cache namespace (default: directory name)")
    parser.add_argument("--storage-root", help="Directory holding the hash cache")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(name)s: %(message)s"
    )

    config = CrawlerConfig.from_env()
    if args.storage_root:
        config.storage_root = Path(args.storage_root)
    if args.include:
        config.include_patterns = args.include
    if args.exclude:
        config.exclude_patterns = args.exclude
    if args.max_file_size is not None:
        config.max_file_size = args.max_file_size
    if args.absolute_paths:
        config.use_relative_paths = False
    if args.incremental:
        config.incremental = True
    if args.workspace_id:
        config.workspace_id = args.workspace_id
    config.__post_init__()

    async def _main() -> CrawlResult:
        orchestrator = Orchestrator(config)
        try:
            return await orchestrator.run(Path(args.root).expanduser(), force=args.force)
        finally:
            orchestrator.close()

    try:
        result = asyncio.run(_main())
    except (KeyboardInterrupt, OperationCancelledError):
        print("\nCancelled.", file=sys.stderr)
        return 130
    except CrawlerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for record in result.files:
        print(record.relative_path)
    print(f"\n{result}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
