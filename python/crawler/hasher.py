"""
Hasher - Content digests and change detection against the hash cache.

Uses xxHash (non-cryptographic, several GB/s) since the digest only has to
tell "same content" from "different content". Every read-modify-write of
the cache goes straight through HashStore with no lock; when several files
in one crawl batch record digests at once, the last save wins and the
others show up as changed on the next run.
"""

import logging
import time
from pathlib import Path
from typing import Callable, Optional

import xxhash

from .config import get_config, CrawlerConfig
from .errors import FileReadError
from .models import HashCacheEntry
from .store import HashStore


logger = logging.getLogger(__name__)


def read_text(path: Path) -> str:
    """
    Read a file as UTF-8 without newline translation.

    The crawler and the detector both read through here, so a digest of
    content read by one always matches a digest computed by the other.
    """
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def compute_digest(content: str) -> str:
    """xxHash64 hex digest of text content."""
    return xxhash.xxh64(content.encode("utf-8")).hexdigest()


class ChangeDetector:
    """
    Answers "has this file changed?" per workspace and records digests.

    Each call loads the full cache document; record_digest() and sweep()
    also write it back. The methods block on file I/O and are meant to run
    on a worker thread (the crawler calls them from its pool).
    """

    def __init__(
        self,
        store: Optional[HashStore] = None,
        config: CrawlerConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or get_config()
        if store is None:
            store = HashStore()
            store.initialize(self.config.storage_root)
        self.store = store
        self._clock = clock

    def digest(self, path: Path, content: Optional[str] = None) -> str:
        """
        Compute the digest of a file, reading it if content is not given.

        Raises:
            FileReadError: if the file cannot be read or decoded
        """
        if content is None:
            try:
                content = read_text(Path(path))
            except (OSError, UnicodeDecodeError) as e:
                raise FileReadError(Path(path), e) from e
        return compute_digest(content)

    def has_changed(self, workspace_id: str, path: Path, content: Optional[str] = None) -> bool:
        """
        Check if a file differs from its recorded digest.

        Missing entries and unreadable files count as changed; only an
        exact digest match returns False.
        """
        document = self.store.load()
        entry = document.get(workspace_id, {}).get(_cache_key(path))

        if entry is None:
            return True

        try:
            current = self.digest(path, content)
        except FileReadError as e:
            logger.debug(f"Treating {path} as changed: {e}")
            return True

        return current != entry.digest

    def record_digest(self, workspace_id: str, path: Path, content: Optional[str] = None) -> str:
        """
        Store the current digest of a file with last_seen = now.

        Returns:
            The recorded digest

        Raises:
            FileReadError: if the digest cannot be computed
        """
        digest = self.digest(path, content)

        document = self.store.load()
        document.setdefault(workspace_id, {})[_cache_key(path)] = HashCacheEntry(
            digest=digest,
            last_seen=self._clock(),
        )
        self.store.save(document)
        return digest

    def sweep(self, max_age_seconds: Optional[float] = None) -> int:
        """
        Drop entries not seen within max_age_seconds.

        Workspaces left empty are removed too. The document is only
        rewritten if something was removed.

        Returns:
            Number of entries removed
        """
        if max_age_seconds is None:
            max_age_seconds = self.config.cache_max_age_seconds

        document = self.store.load()
        now = self._clock()
        removed = 0

        for workspace_id in list(document):
            files = document[workspace_id]
            stale = [p for p, entry in files.items() if now - entry.last_seen > max_age_seconds]
            for file_path in stale:
                del files[file_path]
            removed += len(stale)

            if not files:
                del document[workspace_id]

        if removed:
            logger.info(f"Cleaned up {removed} old entries from file hash cache")
            self.store.save(document)

        return removed


def _cache_key(path: Path) -> str:
    return str(path)
