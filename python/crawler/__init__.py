"""
Crawler Package - Incremental workspace crawling with content-hash caching.

Modules:
    - config: Centralized configuration
    - errors: Error kinds and handling policies
    - store: Atomic JSON hash cache (HashStore)
    - hasher: xxHash digests and change detection (ChangeDetector)
    - filters: .gitignore rules and include/exclude globs
    - scanner: Batched parallel directory crawl (DirectoryCrawler)
    - progress: Stage-weighted progress and cancellation
    - orchestrator: Main entry point and CLI

Crawl Flow:
    Walk (prune excluded) → Batch → Read → Hash check (incremental) → Emit

Usage:
    from crawler import Orchestrator

    orchestrator = Orchestrator()
    result = await orchestrator.run("~/project")
"""

from .models import CrawlResult, FileRecord
from .orchestrator import Orchestrator
from .progress import CancellationToken, ProcessStage, ProgressAggregator
from .scanner import DirectoryCrawler

__all__ = [
    "CancellationToken",
    "CrawlResult",
    "DirectoryCrawler",
    "FileRecord",
    "Orchestrator",
    "ProcessStage",
    "ProgressAggregator",
]
