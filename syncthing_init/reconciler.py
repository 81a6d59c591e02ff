"""Bring a running daemon's configuration in line with the declared one.

One reconciliation run is a read-modify-write against the daemon with no
version check: edits made through the web UI between the fetch and the
submit are lost, and concurrent runs race with the last writer winning.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

import httpx

from .api import SyncthingClient
from .config import Config
from .credentials import wait_for_api_key
from .errors import RestartTriggerError, TransportError
from .merge import merge_declared

logger = logging.getLogger(__name__)


class ReconcileStatus(Enum):
    """Outcome of a reconciliation run."""

    APPLIED = "applied"
    SKIPPED = "skipped"  # Nothing declared
    PLANNED = "planned"  # Dry run, nothing submitted


@dataclass
class ReconcileResult:
    """Result of a reconciliation run."""

    status: ReconcileStatus
    merged_config: dict[str, Any] | None = None
    restart_required: bool = False
    restarted: bool = False
    timestamp: datetime | None = None


class Reconciler:
    """Fetch, merge, submit and restart if the daemon asks for it."""

    def __init__(
        self,
        config: Config,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the reconciler.

        Args:
            config: Loaded configuration with the declared state.
            transport: Optional httpx transport passed to the API client.
        """
        self.config = config
        self._transport = transport

    async def get_api_key(self) -> str:
        """Return the configured API key or wait for the daemon to write one."""
        if self.config.api_key:
            return self.config.api_key

        return await wait_for_api_key(
            self.config.config_path,
            poll_interval=self.config.credentials.poll_interval_seconds,
            timeout=self.config.credentials.timeout_seconds,
        )

    def _make_client(self, api_key: str) -> SyncthingClient:
        api = self.config.api
        return SyncthingClient(
            self.config.base_url,
            api_key,
            timeout=api.timeout_seconds,
            max_retries=api.retry_attempts,
            retry_delay=api.retry_delay_seconds,
            verify=api.verify_tls,
            transport=self._transport,
        )

    async def plan(self) -> ReconcileResult:
        """Compute the merged configuration without submitting it."""
        return await self.reconcile(dry_run=True)

    async def reconcile(self, dry_run: bool = False) -> ReconcileResult:
        """Run one reconciliation pass.

        Args:
            dry_run: Stop after computing the merged configuration.

        Returns:
            ReconcileResult describing what was done.

        Raises:
            CredentialTimeoutError: If the API key never became available.
            TransportError: If fetching or submitting the configuration failed.
            RestartTriggerError: If the configuration was submitted but the
                restart check or the restart command failed.
        """
        if not self.config.has_declarations and not dry_run:
            logger.info("Nothing declared, leaving the daemon configuration as is")
            return ReconcileResult(
                status=ReconcileStatus.SKIPPED,
                timestamp=datetime.now(),
            )

        api_key = await self.get_api_key()

        async with self._make_client(api_key) as client:
            live = await client.get_config()
            merged = merge_declared(live, self.config)
            logger.info(
                f"Merged configuration: {len(merged['devices'])} devices, "
                f"{len(merged['folders'])} folders"
            )

            if dry_run:
                return ReconcileResult(
                    status=ReconcileStatus.PLANNED,
                    merged_config=merged,
                    timestamp=datetime.now(),
                )

            await client.put_config(merged)
            logger.info(f"Configuration submitted to {self.config.base_url}")

            try:
                restart_required = await client.restart_required()
                if restart_required:
                    logger.info("Daemon reports a restart is required, restarting")
                    await client.restart()
            except TransportError as e:
                raise RestartTriggerError(
                    f"Configuration applied but the restart step failed: {e}"
                ) from e

        return ReconcileResult(
            status=ReconcileStatus.APPLIED,
            merged_config=merged,
            restart_required=restart_required,
            restarted=restart_required,
            timestamp=datetime.now(),
        )


async def reconcile(config: Config, dry_run: bool = False) -> ReconcileResult:
    """Run one reconciliation pass for ``config``."""
    return await Reconciler(config).reconcile(dry_run=dry_run)
