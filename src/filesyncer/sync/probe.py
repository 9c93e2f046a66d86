"""Remote reachability check.

This module provides:
- ConnectionProbe: Runs a trivial command over ssh in batch mode
"""

from __future__ import annotations

import logging
import math
import subprocess

from filesyncer.core.types import RemoteEndpoint
from filesyncer.sync.transport import ssh_options

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_MS = 5000


class ConnectionProbe:
    """Checks that the remote host accepts a non-interactive ssh login."""

    def __init__(self, ssh_binary: str = "ssh") -> None:
        self._ssh = ssh_binary

    def build_args(self, endpoint: RemoteEndpoint, timeout_ms: int) -> list[str]:
        """Arguments for the probe command."""
        connect_timeout = max(1, math.ceil(timeout_ms / 1000))
        return [
            self._ssh,
            *ssh_options(endpoint),
            "-o",
            f"ConnectTimeout={connect_timeout}",
            endpoint.target,
            'echo "Connection successful"',
        ]

    def probe(
        self,
        endpoint: RemoteEndpoint,
        timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
    ) -> bool:
        """Check whether the remote is reachable.

        Never raises: timeouts, authentication failures and a missing
        ssh binary all return False.

        Args:
            endpoint: Remote to probe.
            timeout_ms: Upper bound on the whole round-trip.

        Returns:
            True if the remote command succeeded.
        """
        args = self.build_args(endpoint, timeout_ms)
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=timeout_ms / 1000.0,
                stdin=subprocess.DEVNULL,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Connection to %s timed out after %dms", endpoint, timeout_ms)
            return False
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Could not run ssh: %s", e)
            return False

        if result.returncode != 0:
            logger.warning(
                "Connection to %s failed (code %d): %s",
                endpoint,
                result.returncode,
                (result.stderr or "").strip(),
            )
            return False

        logger.debug("Connection to %s succeeded", endpoint)
        return True
