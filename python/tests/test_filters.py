"""
Filter Tests - Verify ignore rules and glob matching.
"""

import warnings
from unittest.mock import patch

from pathspec import GitIgnoreSpec

from crawler.filters import DEFAULT_IGNORES, PathFilter, compile_globs, load_ignore_spec


class TestIgnoreSpec:
    """Tests for .gitignore loading."""

    def test_defaults_without_gitignore(self, workspace):
        """Without a .gitignore only the built-in rules apply."""
        path_filter = PathFilter(load_ignore_spec(workspace))

        assert path_filter.is_ignored(".git", is_dir=True)
        assert path_filter.is_ignored(".DS_Store")
        assert not path_filter.is_ignored("src/main.py")

    def test_gitignore_patterns(self, workspace):
        """Patterns from .gitignore are applied, comments skipped."""
        (workspace / ".gitignore").write_text("# comment\n*.log\nbuild/\n")
        path_filter = PathFilter(load_ignore_spec(workspace))

        assert path_filter.is_ignored("debug.log")
        assert path_filter.is_ignored("nested/trace.log")
        assert path_filter.is_ignored("build", is_dir=True)
        assert path_filter.is_ignored(".gitignore")
        assert not path_filter.is_ignored("# comment")

    def test_directory_only_pattern_skips_files(self, workspace):
        """A trailing-slash pattern does not match a file of the same name."""
        (workspace / ".gitignore").write_text("build/\n")
        path_filter = PathFilter(load_ignore_spec(workspace))

        assert not path_filter.is_ignored("build", is_dir=False)

    def test_unreadable_gitignore_degrades(self, workspace):
        """A .gitignore that cannot be read leaves only the defaults."""
        (workspace / ".gitignore").write_text("*.log\n")

        with patch("pathlib.Path.read_text", side_effect=PermissionError("denied")):
            path_filter = PathFilter(load_ignore_spec(workspace))

        assert not path_filter.is_ignored("debug.log")
        assert path_filter.is_ignored(".git", is_dir=True)

    def test_unparsable_gitignore_degrades(self, workspace):
        """A .gitignore that fails to compile leaves only the defaults."""
        (workspace / ".gitignore").write_text("*.log\n")
        defaults = GitIgnoreSpec.from_lines(DEFAULT_IGNORES)

        with patch(
            "crawler.filters.GitIgnoreSpec.from_lines",
            side_effect=[defaults, ValueError("bad pattern")],
        ):
            path_filter = PathFilter(load_ignore_spec(workspace))

        assert not path_filter.is_ignored("debug.log")
        assert path_filter.is_ignored(".git", is_dir=True)
        assert path_filter.is_ignored(".gitignore")

    def test_compiles_without_deprecation_warnings(self, workspace):
        """Building ignore and glob specs emits no deprecation warnings."""
        (workspace / ".gitignore").write_text("*.log\nbuild/\n")

        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            load_ignore_spec(workspace)
            compile_globs(["*.py", "docs/"])


class TestGlobs:
    """Tests for include/exclude patterns."""

    def test_star_includes_everything(self):
        """The "*" sentinel and an absent list both include all files."""
        assert PathFilter(include_patterns=["*"]).is_included("any/thing.bin")
        assert PathFilter(include_patterns=["*.py", "*"]).is_included("x.md")
        assert PathFilter(include_patterns=None).is_included("x.md")

    def test_include_requires_a_match(self):
        """With explicit globs a file must match at least one."""
        path_filter = PathFilter(include_patterns=["*.py", "docs/*.md"])

        assert path_filter.is_included("main.py")
        assert path_filter.is_included("src/pkg/util.py")
        assert path_filter.is_included("docs/guide.md")
        assert not path_filter.is_included("README.md")

    def test_empty_include_list_matches_nothing(self):
        """An explicit empty include list is not the "*" sentinel."""
        path_filter = PathFilter(include_patterns=[])

        assert not path_filter.is_included("README.md")
        assert not path_filter.is_included("src/main.py")

    def test_exclude_globs(self):
        """Exclusion globs match files and directories."""
        path_filter = PathFilter(exclude_patterns=["node_modules", "tests/*", "*.min.js"])

        assert path_filter.is_excluded("node_modules", is_dir=True)
        assert path_filter.is_excluded("web/node_modules", is_dir=True)
        assert path_filter.is_excluded("tests/test_a.py")
        assert path_filter.is_excluded("static/app.min.js")
        assert not path_filter.is_excluded("src/app.js")

    def test_ignore_rules_checked_before_excludes(self, workspace):
        """An ignored path is excluded even with no exclusion globs."""
        (workspace / ".gitignore").write_text("secret.txt\n")
        path_filter = PathFilter.for_root(workspace, include_patterns=["*.txt"])

        assert path_filter.is_excluded("secret.txt")
        assert path_filter.is_included("secret.txt")
