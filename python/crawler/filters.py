"""
Path filtering - .gitignore rules plus include/exclude globs.

Uses pathspec's GitIgnoreSpec for git-compliant pattern matching, for both the
ignore file and the caller's globs. All matching is done on POSIX-style
paths relative to the crawl root; directories are matched with a trailing
slash so directory-only patterns ("build/") apply to them.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from pathspec import GitIgnoreSpec, PathSpec

from .errors import FileReadError, handle_error


logger = logging.getLogger(__name__)


IGNORE_FILENAME = ".gitignore"

# Always applied: VCS metadata, the ignore file itself, OS clutter
DEFAULT_IGNORES = [
    ".git/",
    IGNORE_FILENAME,
    ".DS_Store",
    "Thumbs.db",
    "desktop.ini",
]

# Include pattern that means "everything"
INCLUDE_ALL = "*"


def _clean_lines(lines: Iterable[str]) -> List[str]:
    """Drop blank lines and comments."""
    return [
        line.rstrip("\r")
        for line in lines
        if line.strip() and not line.strip().startswith("#")
    ]


def load_ignore_spec(root: Path) -> PathSpec:
    """
    Load .gitignore patterns from the crawl root and combine with defaults.

    A missing ignore file is normal. An unreadable or unparsable one is
    logged and leaves only the defaults in effect.
    """
    defaults = GitIgnoreSpec.from_lines(DEFAULT_IGNORES)

    gitignore = root / IGNORE_FILENAME
    if not gitignore.is_file():
        return defaults

    try:
        lines = gitignore.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        handle_error(FileReadError(gitignore, e), gitignore, "load_ignore_spec")
        return defaults

    patterns = _clean_lines(lines)
    try:
        spec = GitIgnoreSpec.from_lines(DEFAULT_IGNORES + patterns)
    except Exception as e:
        # pathspec raises its own error types for malformed patterns
        logger.warning(f"Unable to parse {gitignore}, ignoring its rules: {e}")
        return defaults

    logger.info(f"Loaded {len(patterns)} .gitignore patterns from {gitignore}")
    return spec


def compile_globs(patterns: Optional[Iterable[str]]) -> Optional[PathSpec]:
    """Compile glob patterns, or None if there are none."""
    cleaned = [p for p in (patterns or []) if p and p.strip()]
    if not cleaned:
        return None
    return GitIgnoreSpec.from_lines(cleaned)


def to_match_path(relative: str, is_dir: bool) -> str:
    """Normalize a relative path for matching."""
    path = relative.replace("\\", "/")
    if is_dir and not path.endswith("/"):
        path += "/"
    return path


class PathFilter:
    """
    Applies exclusion and inclusion to root-relative paths.

    Exclusion order: ignore rules first, then exclusion globs. Inclusion
    is only consulted for files that survived exclusion.
    """

    def __init__(
        self,
        ignore_spec: Optional[PathSpec] = None,
        include_patterns: Optional[Iterable[str]] = None,
        exclude_patterns: Optional[Iterable[str]] = None,
    ):
        self.ignore_spec = ignore_spec
        # None or "*" includes everything; an empty list includes nothing
        include = None if include_patterns is None else list(include_patterns)
        self.include_all = include is None or INCLUDE_ALL in include
        self.include_spec = None if self.include_all else compile_globs(include)
        self.exclude_spec = compile_globs(exclude_patterns)

    @classmethod
    def for_root(
        cls,
        root: Path,
        include_patterns: Optional[Iterable[str]] = None,
        exclude_patterns: Optional[Iterable[str]] = None,
    ) -> "PathFilter":
        return cls(load_ignore_spec(root), include_patterns, exclude_patterns)

    def is_ignored(self, relative: str, is_dir: bool = False) -> bool:
        if self.ignore_spec is None:
            return False
        return self.ignore_spec.match_file(to_match_path(relative, is_dir))

    def is_excluded(self, relative: str, is_dir: bool = False) -> bool:
        """Check ignore rules, then exclusion globs."""
        if self.is_ignored(relative, is_dir):
            return True
        if self.exclude_spec is None:
            return False
        return self.exclude_spec.match_file(to_match_path(relative, is_dir))

    def is_included(self, relative: str) -> bool:
        if self.include_all:
            return True
        if self.include_spec is None:
            return False
        return self.include_spec.match_file(to_match_path(relative, False))
