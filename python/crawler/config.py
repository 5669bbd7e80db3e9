"""
Crawler Configuration - Centralized settings for the workspace crawler.

Uses environment variables with sensible defaults. The storage root is
resolved to an absolute path for reliability.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


# Days after which an unseen hash cache entry is swept
DEFAULT_CACHE_MAX_AGE_DAYS = 30

HASH_CACHE_FILENAME = "file_hash_cache.json"


@dataclass
class CrawlerConfig:
    """
    Configuration for the crawler and its hash cache.

    The hash cache lives under storage_root (default ~/.crawler).
    batch_size bounds both the batch length and the worker pool, so at
    most batch_size files are open or being hashed at any time.
    """

    # --- Paths ---
    storage_root: Path = field(default_factory=lambda: Path.home() / ".crawler")

    # --- Concurrency Limits ---
    batch_size: int = 50

    # --- Crawl Parameters ---
    max_file_size: Optional[int] = None     # Bytes; None disables the cap
    include_patterns: List[str] = field(default_factory=lambda: ["*"])
    exclude_patterns: List[str] = field(default_factory=list)
    use_relative_paths: bool = True

    # --- Incremental Mode ---
    incremental: bool = False
    workspace_id: Optional[str] = None
    cache_max_age_days: int = DEFAULT_CACHE_MAX_AGE_DAYS

    def __post_init__(self):
        """Ensure the storage root is absolute and the batch size is usable."""
        self.storage_root = Path(self.storage_root).expanduser().resolve()
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")

    @property
    def hash_cache_path(self) -> Path:
        return self.storage_root / HASH_CACHE_FILENAME

    @property
    def cache_max_age_seconds(self) -> float:
        return self.cache_max_age_days * 24 * 60 * 60

    @classmethod
    def from_env(cls) -> "CrawlerConfig":
        """
        Create config from environment variables.

        Supported env vars:
            CRAWLER_STORAGE_ROOT: Directory holding the hash cache
            CRAWLER_BATCH_SIZE: Files processed concurrently per batch
            CRAWLER_MAX_FILE_SIZE: Maximum file size in bytes
            CRAWLER_CACHE_MAX_AGE_DAYS: Staleness threshold for the sweep
            CRAWLER_INCREMENTAL: "1"/"true" to skip unchanged files
        """
        config = cls()

        if storage_root := os.environ.get("CRAWLER_STORAGE_ROOT"):
            config.storage_root = Path(storage_root)

        if batch_size := os.environ.get("CRAWLER_BATCH_SIZE"):
            config.batch_size = int(batch_size)

        if max_file_size := os.environ.get("CRAWLER_MAX_FILE_SIZE"):
            config.max_file_size = int(max_file_size)

        if max_age := os.environ.get("CRAWLER_CACHE_MAX_AGE_DAYS"):
            config.cache_max_age_days = int(max_age)

        if incremental := os.environ.get("CRAWLER_INCREMENTAL"):
            config.incremental = incremental.strip().lower() in {"1", "true", "yes"}

        config.__post_init__()
        return config


# Singleton default config
_default_config: CrawlerConfig | None = None


def get_config() -> CrawlerConfig:
    """Get the default configuration (singleton)."""
    global _default_config
    if _default_config is None:
        _default_config = CrawlerConfig.from_env()
    return _default_config


def set_config(config: CrawlerConfig) -> None:
    """Override the default configuration (for testing)."""
    global _default_config
    _default_config = config
