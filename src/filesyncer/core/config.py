"""Configuration for filesyncer.

This module provides:
- SyncConfig: Settings for one source/remote pair
- ConfigManager: Loads, validates and saves the JSON config file
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from filesyncer.core.errors import ConfigurationError
from filesyncer.core.types import RemoteEndpoint

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "sync.json"

SYNC_METHODS = ("rsync", "scp")
REMOVAL_POLICIES = ("latest", "skip")
REQUIRED_FIELDS = ("source", "destination", "host", "username")


@dataclass
class SyncConfig:
    """Settings for synchronizing one local directory to a remote host.

    Attributes:
        source: Local directory to watch and send.
        destination: Remote directory files are copied into.
        host: Remote hostname.
        username: Remote login.
        port: SSH port.
        private_key_path: Optional SSH identity file.
        ignore_patterns: Extra gitignore-style deny patterns.
        use_git_tracking: Only sync files tracked by git.
        debounce_ms: Quiet period before a batch of changes is flushed.
        sync_method: "rsync" or "scp".
        exclude_from_gitignore: Also honour <source>/.gitignore.
        delete_remote_files: Full-tree sync removes remote files absent locally.
        propagate_deletes: Incremental rsync sync deletes removed paths remotely.
        max_concurrency: Upper bound on simultaneous per-path transfers.
        removal_policy: "latest" keeps the last kind, "skip" drops
            paths created and removed within one debounce window.
        serialize_paths: Never run two transfers of the same path at once.
    """

    source: str
    destination: str
    host: str
    username: str
    port: int = 22
    private_key_path: str | None = None
    ignore_patterns: list[str] = field(default_factory=list)
    use_git_tracking: bool = False
    debounce_ms: int = 1000
    sync_method: str = "rsync"
    exclude_from_gitignore: bool = True
    delete_remote_files: bool = False
    propagate_deletes: bool = False
    max_concurrency: int = 8
    removal_policy: str = "latest"
    serialize_paths: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncConfig:
        """Build a config from a parsed JSON object.

        Unknown keys are ignored with a warning.

        Raises:
            ConfigurationError: If a required field is missing or invalid.
        """
        missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
        if missing:
            raise ConfigurationError(f"Missing required field: {missing[0]}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))

        config = cls(**{key: value for key, value in data.items() if key in known})
        config.validate()
        return config

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return asdict(self)

    def validate(self) -> None:
        """Check field values.

        Raises:
            ConfigurationError: On the first invalid field.
        """
        for name in REQUIRED_FIELDS:
            if not getattr(self, name):
                raise ConfigurationError(f"Missing required field: {name}")

        if self.sync_method not in SYNC_METHODS:
            raise ConfigurationError('sync_method must be either "rsync" or "scp"')

        if self.removal_policy not in REMOVAL_POLICIES:
            raise ConfigurationError('removal_policy must be either "latest" or "skip"')

        if not isinstance(self.port, int) or not 1 <= self.port <= 65535:
            raise ConfigurationError("port must be between 1 and 65535")

        if not isinstance(self.debounce_ms, int) or self.debounce_ms <= 0:
            raise ConfigurationError("debounce_ms must be a positive integer")

        if not isinstance(self.max_concurrency, int) or self.max_concurrency < 1:
            raise ConfigurationError("max_concurrency must be at least 1")

        if not isinstance(self.ignore_patterns, list):
            raise ConfigurationError("ignore_patterns must be a list of patterns")

    @property
    def source_path(self) -> Path:
        """Absolute path of the source directory."""
        return Path(self.source).expanduser().resolve()

    @property
    def remote_target(self) -> str:
        """rsync/scp destination in ``user@host:dir`` form."""
        return f"{self.username}@{self.host}:{self.destination}"

    @property
    def endpoint(self) -> RemoteEndpoint:
        """Remote endpoint for transports and the connection probe."""
        return RemoteEndpoint(
            host=self.host,
            username=self.username,
            port=self.port,
            private_key_path=self.private_key_path,
        )


def default_config() -> SyncConfig:
    """Config written by ``filesyncer init``, to be edited by the user."""
    return SyncConfig(
        source=".",
        destination="/var/www/app",
        host="example.com",
        username="user",
        port=22,
        private_key_path="~/.ssh/id_rsa",
        ignore_patterns=["node_modules/**", "dist/**", ".git/**"],
    )


class ConfigManager:
    """Reads and writes the JSON config file."""

    def __init__(self, config_path: Path | str | None = None) -> None:
        """Initialize the manager.

        Args:
            config_path: Path to the config file. Defaults to ./sync.json.
        """
        self._path = Path(config_path) if config_path else Path.cwd() / DEFAULT_CONFIG_FILE
        self._config: SyncConfig | None = None

    @property
    def path(self) -> Path:
        """Path of the config file."""
        return self._path

    @property
    def config(self) -> SyncConfig | None:
        """Last loaded or saved config."""
        return self._config

    def exists(self) -> bool:
        """Check if the config file exists."""
        return self._path.exists()

    def load(self) -> SyncConfig:
        """Load and validate the config file.

        Raises:
            ConfigurationError: If the file is missing, unreadable or invalid.
        """
        if not self._path.exists():
            raise ConfigurationError(
                f"Config file not found: {self._path}\n"
                "Run 'filesyncer init' to create one."
            )

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to load config: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError("Failed to load config: expected a JSON object")

        self._config = SyncConfig.from_dict(data)
        logger.debug("Loaded config from %s", self._path)
        return self._config

    def save(self, config: SyncConfig) -> None:
        """Validate and write a config.

        Raises:
            ConfigurationError: If the config is invalid or cannot be written.
        """
        config.validate()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(config.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Failed to save config: {e}") from e
        self._config = config

    def create_default(self) -> SyncConfig:
        """Write and return the default config."""
        config = default_config()
        self.save(config)
        return config
