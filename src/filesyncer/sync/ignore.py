"""Ignore patterns for file synchronization.

This module provides:
- IgnorePatterns: gitignore-style pattern matching backed by pathspec
- ALWAYS_IGNORED: Rules that cannot be switched off (git metadata)
- WATCH_EXCLUDES: Directories the watcher never descends into
"""

from __future__ import annotations

import logging
from pathlib import Path

from pathspec import GitIgnoreSpec

logger = logging.getLogger(__name__)

# Always excluded, whatever the user configured
ALWAYS_IGNORED = [".git", ".git/**"]

# Excluded at the watch level, before any filtering
WATCH_EXCLUDES = ["node_modules/", ".git/"]


class IgnorePatterns:
    """Matches relative paths against gitignore-style patterns.

    Supports the full gitignore syntax (negation with ``!``,
    directory-only patterns with a trailing ``/``, anchoring with a
    leading ``/``, and ``**``).
    """

    def __init__(
        self,
        patterns: list[str] | None = None,
        include_defaults: bool = True,
    ) -> None:
        """Initialize with patterns.

        Args:
            patterns: Gitignore-style deny patterns.
            include_defaults: Add the rule excluding the .git directory.
        """
        self._patterns: list[str] = list(patterns or [])
        self._include_defaults = include_defaults
        self._compile()

    @property
    def patterns(self) -> list[str]:
        """All active patterns, in match order."""
        return list(self._patterns) + (ALWAYS_IGNORED if self._include_defaults else [])

    def _compile(self) -> None:
        # Defaults go last so a user negation cannot re-include .git
        patterns = self.patterns
        self._spec = GitIgnoreSpec.from_lines(patterns)
        # Patterns ending in /** match a directory's contents, never the directory itself
        self._dir_spec = GitIgnoreSpec.from_lines(
            [p for p in patterns if not p.rstrip().endswith("/**")]
        )

    def add_pattern(self, pattern: str) -> None:
        """Add an ignore pattern."""
        self._patterns.append(pattern)
        self._compile()

    def add_patterns(self, patterns: list[str]) -> None:
        """Add several ignore patterns at once."""
        self._patterns.extend(patterns)
        self._compile()

    def load_from_file(self, path: Path) -> bool:
        """Load patterns from a .gitignore-style file.

        Comments and blank lines are skipped. A missing or unreadable
        file is not an error.

        Returns:
            True if the file was read.
        """
        if not path.exists():
            return False

        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read %s: %s", path, e)
            return False

        patterns = [
            line.rstrip()
            for line in lines
            if line.strip() and not line.lstrip().startswith("#")
        ]
        self.add_patterns(patterns)
        logger.debug("Loaded %d ignore patterns from %s", len(patterns), path)
        return True

    def matches(self, rel_path: str, is_dir: bool = False) -> bool:
        """Check if a relative path is ignored.

        Args:
            rel_path: Path relative to the source root.
            is_dir: Whether the path is a directory, so that
                directory-only patterns apply to the path itself.

        A path inside an ignored directory is ignored even when a
        negation matches the path itself, as in git.

        Returns:
            True if the path should be ignored.
        """
        normalized = rel_path.replace("\\", "/").strip("/")
        if not normalized or normalized == ".":
            return False

        parts = normalized.split("/")
        for depth in range(1, len(parts)):
            if self._dir_spec.match_file("/".join(parts[:depth]) + "/"):
                return True

        if is_dir:
            normalized += "/"
        return self._spec.match_file(normalized)

    def filter(self, paths: list[str]) -> list[str]:
        """Return the paths that are not ignored."""
        return [path for path in paths if not self.matches(path)]
