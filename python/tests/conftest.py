"""
Test Configuration - Shared fixtures for crawler tests.

Uses pytest fixtures to create isolated test environments.
"""

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from crawler.config import CrawlerConfig, set_config
from crawler.store import HashStore


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    tmp = tempfile.mkdtemp(prefix="crawler_test_")
    # Resolve to handle macOS /var -> /private/var symlink
    resolved = Path(tmp).resolve()
    yield resolved
    shutil.rmtree(str(resolved), ignore_errors=True)


@pytest.fixture
def workspace(temp_dir: Path) -> Path:
    """Empty directory to crawl, separate from the cache storage root."""
    root = temp_dir / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def storage_root(temp_dir: Path) -> Path:
    return temp_dir / "storage"


@pytest.fixture
def test_config(storage_root: Path) -> CrawlerConfig:
    """Create an isolated test configuration."""
    config = CrawlerConfig(storage_root=storage_root, batch_size=5)
    set_config(config)
    return config


@pytest.fixture
def serial_config(storage_root: Path) -> CrawlerConfig:
    """One file per batch, so cache writes never race within a crawl."""
    config = CrawlerConfig(storage_root=storage_root, batch_size=1)
    set_config(config)
    return config


@pytest.fixture
def hash_store(storage_root: Path) -> HashStore:
    store = HashStore()
    store.initialize(storage_root)
    return store


@pytest.fixture
def sample_files(workspace: Path) -> dict[str, Path]:
    """Create a small project tree for crawling."""
    files = {}

    readme = workspace / "README.md"
    readme.write_text("# Sample\n\nA project for crawling.\n")
    files["readme"] = readme

    main = workspace / "src" / "main.py"
    main.parent.mkdir()
    main.write_text('def main():\n    print("hello")\n')
    files["main"] = main

    nested = workspace / "src" / "pkg" / "util.py"
    nested.parent.mkdir()
    nested.write_text("VALUE = 1\n")
    files["nested"] = nested

    notes = workspace / "docs" / "notes.txt"
    notes.parent.mkdir()
    notes.write_text("Some notes.\n")
    files["notes"] = notes

    dependency = workspace / "node_modules" / "lib" / "index.py"
    dependency.parent.mkdir(parents=True)
    dependency.write_text("# vendored\n")
    files["dependency"] = dependency

    return files


@pytest.fixture
def gitignore_scenario(workspace: Path) -> Path:
    """a.txt and b.txt (5 bytes each) with b.txt listed in .gitignore."""
    (workspace / "a.txt").write_text("aaaaa")
    (workspace / "b.txt").write_text("bbbbb")
    (workspace / ".gitignore").write_text("b.txt\n")
    return workspace
