"""Path eligibility filter.

This module provides:
- PathFilter: Decides whether a change should be synchronized

Checks run cheapest first and short-circuit:
1. Ignore patterns (in-process)
2. Git tracking, if enabled (spawns git)

A path rejected by the patterns never reaches git.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from filesyncer.core.errors import FilterError
from filesyncer.core.types import ChangeKind, normalize_path
from filesyncer.sync.git import GitTracker
from filesyncer.sync.ignore import IgnorePatterns

if TYPE_CHECKING:
    from filesyncer.core.config import SyncConfig

logger = logging.getLogger(__name__)


class PathFilter:
    """Combines ignore patterns and the optional git-tracking gate."""

    def __init__(
        self,
        ignore: IgnorePatterns,
        git_tracker: GitTracker | None = None,
    ) -> None:
        """Initialize the filter.

        Args:
            ignore: Compiled ignore patterns.
            git_tracker: Tracker to consult; None disables git tracking.
        """
        self._ignore = ignore
        self._git = git_tracker
        self._git_failure_logged = False

    @classmethod
    def from_config(cls, config: SyncConfig, base_dir: Path | None = None) -> PathFilter:
        """Build a filter from settings.

        Loads ``<base_dir>/.gitignore`` when ``exclude_from_gitignore`` is on.
        """
        base = Path(base_dir) if base_dir else config.source_path
        ignore = IgnorePatterns(config.ignore_patterns)
        if config.exclude_from_gitignore:
            ignore.load_from_file(base / ".gitignore")
        tracker = GitTracker(base) if config.use_git_tracking else None
        return cls(ignore, tracker)

    @property
    def ignore(self) -> IgnorePatterns:
        return self._ignore

    @property
    def git_tracking(self) -> bool:
        """Whether the git-tracking gate is active."""
        return self._git is not None

    def is_ignored(self, rel_path: str, kind: ChangeKind | None = None) -> bool:
        """Check the ignore patterns only."""
        is_dir = kind in (ChangeKind.DIR_ADD, ChangeKind.DIR_REMOVE)
        return self._ignore.matches(normalize_path(rel_path), is_dir=is_dir)

    def accepts(self, rel_path: str, kind: ChangeKind) -> bool:
        """Decide whether a change is eligible for synchronization.

        Args:
            rel_path: Path relative to the source root.
            kind: Kind of the observed change.

        Returns:
            False for ignored paths, and, with git tracking on, for
            untracked paths unless the change is a removal.
        """
        if self.is_ignored(rel_path, kind):
            return False

        if self._git is None:
            return True

        # Removals pass so deleted tracked files can still be cleaned up remotely
        if kind.is_removal:
            return True

        return self._is_tracked(self._git, normalize_path(rel_path))

    def _is_tracked(self, git: GitTracker, rel_path: str) -> bool:
        try:
            return git.is_tracked(rel_path)
        except FilterError as e:
            if not self._git_failure_logged:
                logger.warning("Git query failed, treating paths as untracked: %s", e)
                self._git_failure_logged = True
            else:
                logger.debug("Git query failed for %s: %s", rel_path, e)
            return False
