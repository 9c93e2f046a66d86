"""Shared pytest fixtures."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest

from filesyncer.core.config import SyncConfig


@pytest.fixture(autouse=True)
def reset_filesyncer_logger() -> Generator[None, None, None]:
    """Undo the handler the CLI installs so log capture keeps working."""
    yield
    filesyncer_logger = logging.getLogger("filesyncer")
    for handler in filesyncer_logger.handlers[:]:
        filesyncer_logger.removeHandler(handler)
    filesyncer_logger.setLevel(logging.NOTSET)
    filesyncer_logger.propagate = True


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """Create a source directory to sync from."""
    source = tmp_path / "project"
    source.mkdir()
    return source


@pytest.fixture
def config(source_dir: Path) -> SyncConfig:
    """Create a config pointing at the source directory."""
    return SyncConfig(
        source=str(source_dir),
        destination="/var/www/app",
        host="example.com",
        username="deploy",
    )
