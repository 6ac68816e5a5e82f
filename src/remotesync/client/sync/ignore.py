"""Ignore patterns for the watched tree.

This module provides:
- IgnorePatterns: Glob and regular-expression matching on relative paths
- DEFAULT_IGNORE_PATTERNS: Dotfiles and dot-directories

Patterns prefixed with "re:" are regular expressions searched in the
forward-slash relative path. Anything else is a glob matched against the
relative path, the file name and each path component.
"""

from __future__ import annotations

import fnmatch
import re
from pathlib import Path

REGEX_PREFIX = "re:"

# Dotfiles anywhere in the tree
DEFAULT_IGNORE_PATTERNS = [
    ".*",
]


class IgnorePatterns:
    """Handles ignore pattern matching for file paths."""

    def __init__(self, patterns: list[str] | None = None) -> None:
        """Initialize with patterns.

        Args:
            patterns: Glob or "re:" patterns. None selects the defaults;
                an explicit list replaces them.
        """
        self._globs: list[str] = []
        self._regexes: list[re.Pattern[str]] = []
        for pattern in DEFAULT_IGNORE_PATTERNS if patterns is None else patterns:
            self.add_pattern(pattern)

    @property
    def patterns(self) -> list[str]:
        """Get the active patterns in their configured form."""
        return self._globs + [REGEX_PREFIX + r.pattern for r in self._regexes]

    def add_pattern(self, pattern: str) -> None:
        """Add an ignore pattern.

        Raises:
            ValueError: If a "re:" pattern is not a valid regular expression.
        """
        if pattern.startswith(REGEX_PREFIX):
            try:
                self._regexes.append(re.compile(pattern[len(REGEX_PREFIX):]))
            except re.error as e:
                raise ValueError(f"Invalid ignore regex {pattern!r}: {e}") from e
        else:
            self._globs.append(pattern)

    def load_from_file(self, path: Path) -> None:
        """Load patterns from a .syncignore file."""
        if path.exists():
            with open(path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    # Skip comments and empty lines
                    if line and not line.startswith("#"):
                        self.add_pattern(line)

    def should_ignore(self, path: Path, base_path: Path) -> bool:
        """Check if a path should be ignored.

        Args:
            path: Absolute path to check.
            base_path: Watched root directory.

        Returns:
            True if the path should be ignored. Paths outside base_path are
            never ignored here.
        """
        try:
            rel_path = path.relative_to(base_path)
        except ValueError:
            return False

        rel_str = str(rel_path).replace("\\", "/")
        if rel_str == ".":
            return False
        return self.matches(rel_str)

    def matches(self, relative_path: str) -> bool:
        """Check a forward-slash relative path against the patterns."""
        parts = relative_path.split("/")

        for regex in self._regexes:
            if regex.search(relative_path):
                return True

        for pattern in self._globs:
            # Handle directory-only patterns (ending with /)
            if pattern.endswith("/"):
                if any(fnmatch.fnmatch(part, pattern[:-1]) for part in parts[:-1]):
                    return True
                if fnmatch.fnmatch(relative_path, pattern[:-1]):
                    return True
            elif "/" in pattern:
                if fnmatch.fnmatch(relative_path, pattern):
                    return True
            elif any(fnmatch.fnmatch(part, pattern) for part in parts):
                return True

        return False
