"""
HashStore Tests - Verify cache persistence.

Tests:
- Round trip of the full document
- Missing / empty / malformed documents load as empty
- Atomic replace leaves no temp files behind
- Uninitialized store is a warning no-op
"""

import json
from pathlib import Path
from unittest.mock import patch

from crawler.config import HASH_CACHE_FILENAME
from crawler.models import HashCacheEntry
from crawler.store import HashStore


class TestHashStoreRoundTrip:
    """Tests for save/load."""

    def test_round_trip(self, hash_store):
        """A saved document loads back identically."""
        document = {
            "w1": {
                "/repo/a.txt": HashCacheEntry(digest="abc123", last_seen=1000.0),
                "/repo/dir/b.txt": HashCacheEntry(digest="def456", last_seen=2000.5),
            },
            "w2": {
                "/other/ünïcode.md": HashCacheEntry(digest="0f0f", last_seen=3.0),
            },
        }

        assert hash_store.save(document) is True
        assert hash_store.load() == document

    def test_path_derived_from_storage_root(self, storage_root):
        """initialize() places the cache under the storage root and creates it."""
        store = HashStore()
        path = store.initialize(storage_root)

        assert path == storage_root / HASH_CACHE_FILENAME
        assert storage_root.is_dir()
        assert store.is_initialized

    def test_written_as_pretty_json(self, hash_store):
        """The file on disk is indented JSON with digest/last_seen fields."""
        hash_store.save({"w": {"/f": HashCacheEntry(digest="d", last_seen=1.0)}})

        text = hash_store.path.read_text(encoding="utf-8")
        assert "\n  " in text
        assert json.loads(text) == {"w": {"/f": {"digest": "d", "last_seen": 1.0}}}

    def test_no_temp_files_left(self, hash_store):
        """Saving leaves only the cache file in the storage root."""
        hash_store.save({"w": {"/f": HashCacheEntry(digest="d", last_seen=1.0)}})
        hash_store.save({"w": {"/f": HashCacheEntry(digest="e", last_seen=2.0)}})

        assert [p.name for p in hash_store.path.parent.iterdir()] == [HASH_CACHE_FILENAME]


class TestHashStoreRecovery:
    """Tests for best-effort loading and saving."""

    def test_missing_file_is_empty(self, hash_store):
        """No cache file yet loads as an empty document."""
        assert hash_store.load() == {}

    def test_empty_file_is_empty(self, hash_store):
        """A blank cache file loads as an empty document."""
        hash_store.path.write_text("  \n", encoding="utf-8")
        assert hash_store.load() == {}

    def test_invalid_json_is_empty(self, hash_store):
        """Malformed JSON loads as an empty document."""
        hash_store.path.write_text("{not json", encoding="utf-8")
        assert hash_store.load() == {}

    def test_wrong_shape_is_empty(self, hash_store):
        """Valid JSON of the wrong shape loads as an empty document."""
        hash_store.path.write_text(json.dumps({"w": {"/f": {"hash": "x"}}}), encoding="utf-8")
        assert hash_store.load() == {}

        hash_store.path.write_text(json.dumps(["a", "b"]), encoding="utf-8")
        assert hash_store.load() == {}

    def test_failed_rename_keeps_previous_document(self, hash_store):
        """A failed replace is swallowed and the old document survives."""
        original = {"w": {"/f": HashCacheEntry(digest="old", last_seen=1.0)}}
        hash_store.save(original)

        with patch("crawler.store.os.replace", side_effect=OSError("disk full")):
            saved = hash_store.save({"w": {"/f": HashCacheEntry(digest="new", last_seen=2.0)}})

        assert saved is False
        assert hash_store.load() == original
        assert [p.name for p in hash_store.path.parent.iterdir()] == [HASH_CACHE_FILENAME]

    def test_uninitialized_store_is_noop(self, temp_dir):
        """Before initialize(), load is empty and save writes nothing."""
        store = HashStore()

        assert store.load() == {}
        assert store.save({"w": {"/f": HashCacheEntry(digest="d", last_seen=1.0)}}) is False
        assert not any(temp_dir.iterdir())

    def test_serialization_error_is_swallowed(self, hash_store):
        """A ValueError while encoding is logged like any other write failure."""
        with patch("crawler.store.json.dumps", side_effect=ValueError("Out of range float values")):
            saved = hash_store.save({"w": {"/f": HashCacheEntry(digest="d", last_seen=1.0)}})

        assert saved is False
        assert hash_store.load() == {}


class TestHashStoreEncoding:
    """Tests for file names that are not valid UTF-8."""

    def test_undecodable_path_round_trips(self, hash_store):
        """Surrogate-escaped paths are written escaped and load back unchanged."""
        key = "/repo/bad\udcff.txt"
        document = {"w": {key: HashCacheEntry(digest="d", last_seen=1.0)}}

        assert hash_store.save(document) is True
        assert "\\udcff" in hash_store.path.read_text(encoding="utf-8")
        assert hash_store.load() == document
