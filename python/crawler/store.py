"""
HashStore - Persisted (workspace, path) -> (digest, last_seen) document.

The whole document is one JSON file that is read and rewritten in full on
every mutation. Writes go to a temporary sibling and are renamed over the
real path, so a crash mid-write leaves the previous document intact.

The cache is best-effort: unreadable or malformed documents load as empty,
and failed writes are logged and dropped.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from .config import HASH_CACHE_FILENAME
from .errors import CacheCorruptionError, CachePersistError, handle_error
from .models import HashCacheEntry, HashStoreDocument


logger = logging.getLogger(__name__)


class HashStore:
    """
    Data-access layer for the file hash cache.

    The store path is fixed once via initialize(); until then load()
    returns an empty document and save() does nothing.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path: Optional[Path] = Path(path) if path is not None else None

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def is_initialized(self) -> bool:
        return self._path is not None

    def initialize(self, storage_root: Path) -> Path:
        """
        Derive the cache path from a storage root and create the root.

        Failure to create the directory is logged; the path is still set
        so a later save can retry.
        """
        storage_root = Path(storage_root).expanduser()
        self._path = storage_root / HASH_CACHE_FILENAME
        try:
            storage_root.mkdir(parents=True, exist_ok=True)
            logger.info(f"File hash cache path initialized: {self._path}")
        except OSError as e:
            logger.error(f"Failed to create file hash cache directory {storage_root}: {e}")
        return self._path

    def load(self) -> HashStoreDocument:
        """Read the persisted document, or an empty one if there is none."""
        if self._path is None:
            logger.warning("File hash cache path not initialized, using empty cache")
            return {}

        try:
            data = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError) as e:
            handle_error(
                CacheCorruptionError(self._path, f"unreadable ({e})"),
                self._path,
                "hash_store.load",
            )
            return {}

        if not data.strip():
            return {}

        try:
            return _parse_document(json.loads(data))
        except ValueError as e:
            # json.JSONDecodeError is a ValueError too
            handle_error(CacheCorruptionError(self._path, str(e)), self._path, "hash_store.load")
            return {}

    def save(self, document: HashStoreDocument) -> bool:
        """
        Atomically replace the persisted document.

        Returns:
            True if the document was written, False otherwise
        """
        if self._path is None:
            logger.warning("File hash cache path not initialized, cannot write cache")
            return False

        temp_name: Optional[str] = None
        try:
            # ASCII output escapes the surrogates of undecodable file names
            payload = json.dumps(_serialize_document(document), indent=2)
            self._path.parent.mkdir(parents=True, exist_ok=True)
            # Unique temp name: concurrent savers never share a temp file
            handle = tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=str(self._path.parent),
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            )
            temp_name = handle.name
            with handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_name, self._path)
            temp_name = None
        except (OSError, ValueError) as e:
            handle_error(CachePersistError(self._path, e), self._path, "hash_store.save")
            return False
        finally:
            if temp_name is not None:
                try:
                    os.remove(temp_name)
                except OSError:
                    pass

        logger.debug(f"File hash cache updated: {self._path}")
        return True


def _parse_document(raw: Any) -> HashStoreDocument:
    """Validate the JSON shape; raises ValueError on anything unexpected."""
    if not isinstance(raw, dict):
        raise ValueError(f"top level must be an object, got {type(raw).__name__}")

    document: HashStoreDocument = {}
    for workspace_id, files in raw.items():
        if not isinstance(files, dict):
            raise ValueError(f"workspace {workspace_id!r} must map to an object")
        document[workspace_id] = {
            file_path: HashCacheEntry.from_dict(entry)
            for file_path, entry in files.items()
        }
    return document


def _serialize_document(document: HashStoreDocument) -> dict:
    return {
        workspace_id: {path: entry.to_dict() for path, entry in files.items()}
        for workspace_id, files in document.items()
    }
