"""
Data Models - Type definitions shared by the crawler and the hash cache.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class FileRecord:
    """
    A crawled file as handed to downstream stages.

    relative_path is POSIX-style and relative to the crawl root, or the
    absolute path when the crawl was asked for absolute paths.
    """
    relative_path: str
    content: str


@dataclass
class HashCacheEntry:
    """Last recorded digest of a file within one workspace."""
    digest: str
    last_seen: float           # Epoch seconds

    def to_dict(self) -> Dict[str, Any]:
        return {"digest": self.digest, "last_seen": self.last_seen}

    @classmethod
    def from_dict(cls, data: Any) -> "HashCacheEntry":
        """
        Build an entry from its JSON form.

        Raises ValueError when the value does not have the entry shape.
        """
        if not isinstance(data, dict):
            raise ValueError(f"expected object, got {type(data).__name__}")
        digest = data.get("digest")
        last_seen = data.get("last_seen")
        if not isinstance(digest, str):
            raise ValueError("entry has no string 'digest'")
        if isinstance(last_seen, bool) or not isinstance(last_seen, (int, float)):
            raise ValueError("entry has no numeric 'last_seen'")
        return cls(digest=digest, last_seen=float(last_seen))


# workspace id -> file path -> entry
HashStoreDocument = Dict[str, Dict[str, HashCacheEntry]]


@dataclass
class CrawlResult:
    """Result of crawling a directory tree."""
    files: List[FileRecord] = field(default_factory=list)
    unchanged: Optional[int] = None      # Only set in incremental mode
    skipped_count: int = 0               # Over the size cap
    error_count: int = 0                 # Unreadable files
    duration_seconds: float = 0.0

    def __str__(self) -> str:
        summary = f"Crawled {len(self.files)} files"
        if self.unchanged is not None:
            summary += f" ({self.unchanged} unchanged)"
        return (
            f"{summary}, {self.skipped_count} oversized, "
            f"{self.error_count} errors in {self.duration_seconds:.1f}s"
        )
