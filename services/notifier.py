"""Fire-and-forget webhook notifications for recorded visits."""

import asyncio
import logging
from typing import Any, Dict, Optional, Set

import aiohttp

from config import NOTIFY_TIMEOUT_SECONDS
from models.session_models import UNKNOWN, TrackingSession, Visit

LOGGER = logging.getLogger(__name__)

_USER_AGENT_PREVIEW = 100


def build_visit_payload(session: TrackingSession, visit: Visit, visit_number: int) -> Dict[str, Any]:
    """Format a recorded visit as the JSON body posted to the webhook."""
    language = (visit.accept_language or "").split(",")[0].strip() or UNKNOWN
    user_agent = (visit.user_agent or UNKNOWN)[:_USER_AGENT_PREVIEW]
    content = (
        f"Visit #{visit_number} on {session.label}: {visit.ip} "
        f"({visit.geo.location()}), {user_agent}"
    )
    return {
        "event": "visit",
        "session_id": session.session_id,
        "label": session.label,
        "message": session.message,
        "visit_number": visit_number,
        "content": content,
        "language": language,
        "visit": visit.to_dict(),
    }


class WebhookNotifier:
    """Post visit notifications in background tasks the request never awaits."""

    def __init__(self, session: aiohttp.ClientSession, timeout_seconds: float = NOTIFY_TIMEOUT_SECONDS) -> None:
        self._session = session
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._pending: Set[asyncio.Task] = set()

    def dispatch(self, session: TrackingSession, visit: Visit, visit_number: int) -> Optional[asyncio.Task]:
        """Schedule delivery for a visit and return the task, or None if skipped."""
        if not session.notify_url:
            LOGGER.debug("Session %s has no notify_url; skipping notification", session.session_id)
            return None
        payload = build_visit_payload(session, visit, visit_number)
        task = asyncio.create_task(self.send(session.notify_url, payload, session.session_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def send(self, url: str, payload: Dict[str, Any], session_id: str) -> bool:
        """POST one payload; return True on a 2xx response. Failures are logged, not raised."""
        try:
            async with self._session.post(url, json=payload, timeout=self.timeout) as response:
                if response.status >= 300:
                    LOGGER.error(
                        "Webhook for session %s rejected notification with HTTP %s", session_id, response.status
                    )
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            LOGGER.error("Error sending notification for session %s: %s", session_id, exc)
            return False
        LOGGER.info("Sent visit data to webhook for session %s", session_id)
        return True

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def aclose(self, timeout: float = 5.0) -> None:
        """Wait briefly for in-flight notifications, then cancel the rest."""
        if not self._pending:
            return
        tasks = list(self._pending)
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            LOGGER.warning("Cancelled %d undelivered notifications at shutdown", len(still_running))
