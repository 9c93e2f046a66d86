"""Git tracked-file queries.

This module provides:
- GitTracker: Asks the ``git`` binary whether paths are tracked
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from filesyncer.core.errors import FilterError

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 10.0  # seconds

# git ls-files --error-unmatch exits with 1 for untracked paths
UNTRACKED_EXIT_CODE = 1


class GitTracker:
    """Queries the git index of a working tree.

    A directory that is not a git repository has no tracked files;
    that is not an error. Failures of the git binary itself are
    reported as FilterError by ``is_tracked``.
    """

    def __init__(self, base_dir: Path, git_binary: str = "git") -> None:
        """Initialize the tracker.

        Args:
            base_dir: Root of the working tree.
            git_binary: Name or path of the git executable.
        """
        self._base_dir = Path(base_dir)
        self._git = git_binary

    @property
    def base_dir(self) -> Path:
        """Root of the working tree."""
        return self._base_dir

    @property
    def has_git_dir(self) -> bool:
        """Check for a .git entry at the root."""
        return (self._base_dir / ".git").exists()

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        try:
            return subprocess.run(
                [self._git, *args],
                cwd=self._base_dir,
                capture_output=True,
                text=True,
                timeout=GIT_TIMEOUT,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise FilterError(f"git {args[0]} failed: {e}") from e

    def is_repository(self) -> bool:
        """Check if the base directory is a usable git repository."""
        if not self.has_git_dir:
            return False
        try:
            return self._run("rev-parse", "--git-dir").returncode == 0
        except FilterError:
            return False

    def tracked_files(self) -> list[str]:
        """List every tracked file, relative to the base directory.

        Returns an empty list if the directory is not a repository or
        git cannot be run.
        """
        if not self.has_git_dir:
            return []

        try:
            result = self._run("ls-files", "-z")
        except FilterError as e:
            logger.warning("Failed to get tracked files: %s", e)
            return []

        if result.returncode != 0:
            logger.warning("Failed to get tracked files: %s", result.stderr.strip())
            return []

        return [name for name in result.stdout.split("\0") if name.strip()]

    def is_tracked(self, rel_path: str) -> bool:
        """Check if a path is tracked by git.

        A directory counts as tracked when it contains tracked files.

        Raises:
            FilterError: If git could not answer (binary missing,
                corrupt repository, timeout).
        """
        if not self.has_git_dir:
            return False

        # Literal magic keeps glob characters in file names from matching other paths
        result = self._run("ls-files", "--error-unmatch", "--", f":(literal){rel_path}")
        if result.returncode == 0:
            return bool(result.stdout.strip())
        if result.returncode == UNTRACKED_EXIT_CODE:
            return False
        raise FilterError(
            f"git ls-files exited with {result.returncode}: {result.stderr.strip()}"
        )
