"""Helpers to remove expired tracking sessions from the registry."""

import asyncio
import logging

from services.session_registry import VisitRegistry

LOGGER = logging.getLogger(__name__)


class SessionSweeper:
    """Delete sessions older than the configured retention window."""

    def __init__(self, registry: VisitRegistry, retention_seconds: int = 86_400) -> None:
        """
        Args:
            registry: Shared session registry to prune.
            retention_seconds: Age threshold in seconds; sessions older than this are removed.
        """
        self._registry = registry
        self.retention_seconds = retention_seconds

    async def prune_expired_sessions(self) -> int:
        """Delete sessions older than the retention window and return count removed."""
        cutoff = self._registry.now() - self.retention_seconds
        removed = self._registry.prune_older_than(cutoff)
        if removed:
            LOGGER.info("Cleaned up %d old sessions", len(removed))
        return len(removed)

    async def run_periodic_cleanup(self, interval_seconds: int = 3_600) -> None:
        """
        Repeatedly prune expired sessions at the given interval until cancelled.

        Args:
            interval_seconds: Seconds to sleep between cleanup runs.
        """
        while True:
            try:
                await asyncio.sleep(interval_seconds)
                await self.prune_expired_sessions()
            except asyncio.CancelledError:
                break
            except Exception:
                LOGGER.exception("Session sweep failed; retrying on the next tick")
