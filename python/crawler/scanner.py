"""
Scanner - Incremental directory crawler.

Walks a directory tree once to collect candidate files, then reads them in
fixed-size batches. Files within a batch are read (and, in incremental
mode, hashed and checked against the cache) concurrently on a thread pool;
batches run one after another, so at most batch_size files are in flight.
"""

import asyncio
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .config import get_config, CrawlerConfig
from .errors import EmptyResultError, NotFoundError, handle_error
from .filters import PathFilter
from .hasher import ChangeDetector, read_text
from .models import CrawlResult, FileRecord


logger = logging.getLogger(__name__)


# (processed, total, current path); raising aborts the crawl
ProgressCallback = Callable[[int, int, str], None]


@dataclass
class _Candidate:
    path: Path             # Absolute path on disk
    relative_path: str     # Path reported to the caller


class _Outcome(Enum):
    EMITTED = "emitted"
    UNCHANGED = "unchanged"
    OVERSIZED = "oversized"
    FAILED = "failed"


class DirectoryCrawler:
    """
    Crawls a directory into a list of FileRecords.

    With incremental=True, files whose content digest matches the one
    recorded for the workspace are counted as unchanged and left out of
    the result; emitted files get their new digest recorded.
    """

    def __init__(
        self,
        config: CrawlerConfig | None = None,
        detector: Optional[ChangeDetector] = None,
    ):
        self.config = config or get_config()
        self._detector = detector
        self._executor: ThreadPoolExecutor | None = None

    @property
    def detector(self) -> ChangeDetector:
        if self._detector is None:
            self._detector = ChangeDetector(config=self.config)
        return self._detector

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.batch_size,
                thread_name_prefix="crawler"
            )
        return self._executor

    async def crawl(
        self,
        root_dir: Path | str,
        include_patterns: Optional[Sequence[str]] = None,
        exclude_patterns: Optional[Sequence[str]] = None,
        max_file_size: Optional[int] = None,
        use_relative_paths: bool = True,
        progress_callback: Optional[ProgressCallback] = None,
        incremental: bool = False,
        workspace_id: Optional[str] = None,
    ) -> CrawlResult:
        """
        Crawl a directory and read every eligible file.

        Args:
            root_dir: Directory to crawl
            include_patterns: Globs a file must match (None or "*" = all, [] = none)
            exclude_patterns: Globs that exclude files and prune directories
            max_file_size: Skip files larger than this many bytes
            use_relative_paths: Report root-relative paths (else absolute)
            progress_callback: Called after each file; exceptions propagate
            incremental: Skip files unchanged since the last recorded digest
            workspace_id: Cache namespace (defaults to the root's name)

        Returns:
            CrawlResult with the files read and, in incremental mode,
            the number of unchanged files

        Raises:
            NotFoundError: root_dir is missing or not a directory
            EmptyResultError: nothing survived filtering
        """
        root = Path(root_dir).expanduser()
        if not root.is_dir():
            raise NotFoundError(root)
        root = root.resolve()

        start_time = time.monotonic()
        path_filter = PathFilter.for_root(root, include_patterns, exclude_patterns)

        candidates: List[_Candidate] = []
        self._collect(root, root, path_filter, use_relative_paths, candidates)

        if incremental and not workspace_id:
            workspace_id = root.name
            logger.warning(
                "Incremental processing requested but no workspace ID provided. "
                f"Using directory name as workspace ID: {workspace_id}"
            )

        result = CrawlResult(unchanged=0 if incremental else None)
        total = len(candidates)
        processed = 0

        loop = asyncio.get_running_loop()
        executor = self._get_executor()
        batch_size = self.config.batch_size

        async def run_one(candidate: _Candidate):
            nonlocal processed
            outcome = await loop.run_in_executor(
                executor,
                self._process_file_sync,
                candidate,
                max_file_size,
                workspace_id if incremental else None,
            )
            processed += 1
            if progress_callback is not None:
                progress_callback(processed, total, str(candidate.path))
            return outcome

        for i in range(0, total, batch_size):
            batch = candidates[i:i + batch_size]
            tasks = [asyncio.ensure_future(run_one(c)) for c in batch]
            try:
                outcomes = await asyncio.gather(*tasks)
            except BaseException:
                # Abort the rest of the batch; committed digests stay committed
                for task in tasks:
                    task.cancel()
                raise

            for outcome in outcomes:
                if isinstance(outcome, FileRecord):
                    result.files.append(outcome)
                elif outcome is _Outcome.UNCHANGED:
                    result.unchanged += 1
                elif outcome is _Outcome.OVERSIZED:
                    result.skipped_count += 1
                else:
                    result.error_count += 1

        result.duration_seconds = time.monotonic() - start_time

        if not result.files and not result.unchanged:
            raise EmptyResultError(root)

        logger.info(f"{result} ({total} candidates under {root})")
        return result

    def _collect(
        self,
        root: Path,
        directory: Path,
        path_filter: PathFilter,
        use_relative_paths: bool,
        out: List[_Candidate],
    ) -> None:
        """
        Recursively gather candidate files, pruning excluded directories.

        Uses os.scandir for efficiency (DirEntry caches the type lookup).
        """
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            handle_error(e, directory, "scan_directory")
            return

        for entry in entries:
            entry_path = Path(entry.path)
            relative = entry_path.relative_to(root).as_posix()

            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file(follow_symlinks=False)
            except OSError as e:
                handle_error(e, entry_path, "scan_entry")
                continue

            if path_filter.is_excluded(relative, is_dir=is_dir):
                continue

            if is_dir:
                self._collect(root, entry_path, path_filter, use_relative_paths, out)
                continue

            # Symlinks, sockets, devices...
            if not is_file:
                continue

            if not path_filter.is_included(relative):
                continue

            out.append(_Candidate(
                path=entry_path,
                relative_path=relative if use_relative_paths else str(entry_path),
            ))

    def _process_file_sync(
        self,
        candidate: _Candidate,
        max_file_size: Optional[int],
        workspace_id: Optional[str],
    ):
        """
        Stat, read and (in incremental mode) check one file.

        Runs in the thread pool. Content is read once and reused for both
        the digest check and the emitted record.
        """
        path = candidate.path

        try:
            if max_file_size is not None and path.stat().st_size > max_file_size:
                logger.debug(f"Skipping oversized file: {candidate.relative_path}")
                return _Outcome.OVERSIZED

            content = read_text(path)

            if workspace_id is not None:
                if not self.detector.has_changed(workspace_id, path, content):
                    logger.debug(f"Skipping unchanged file: {path}")
                    return _Outcome.UNCHANGED
                self.detector.record_digest(workspace_id, path, content)

            return FileRecord(relative_path=candidate.relative_path, content=content)

        except Exception as e:
            handle_error(e, path, "read_file")
            return _Outcome.FAILED

    def close(self):
        """Shutdown the thread pool."""
        if self._executor:
            self._executor.shutdown(wait=False)
            self._executor = None


async def crawl_directory(
    root_dir: Path | str,
    config: CrawlerConfig | None = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> CrawlResult:
    """
    Convenience function to crawl with the crawl parameters from config.

    Usage:
        result = await crawl_directory(Path.home() / "project")
        for record in result.files:
            print(record.relative_path)
    """
    config = config or get_config()
    crawler = DirectoryCrawler(config)
    try:
        return await crawler.crawl(
            root_dir,
            include_patterns=config.include_patterns,
            exclude_patterns=config.exclude_patterns,
            max_file_size=config.max_file_size,
            use_relative_paths=config.use_relative_paths,
            progress_callback=progress_callback,
            incremental=config.incremental,
            workspace_id=config.workspace_id,
        )
    finally:
        crawler.close()
