"""Thread-safe in-memory registry of tracking sessions and their visits."""

from __future__ import annotations

import copy
import dataclasses
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from models.session_models import SessionSummary, TrackingSession, Visit

LOGGER = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
	"""Raised when an operation references an unknown session id."""

	def __init__(self, session_id: str) -> None:
		super().__init__(session_id)
		self.session_id = session_id

	def __str__(self) -> str:
		return f"Session {self.session_id} not found"


class NoVisitsError(LookupError):
	"""Raised when enrichment is attempted before any visit was recorded."""

	def __init__(self, session_id: str) -> None:
		super().__init__(f"Session {session_id} has no recorded visits")
		self.session_id = session_id


class VisitRegistry:
	"""Own tracking sessions and keep each visit log consistent with its counter.

	A single lock guards the whole map. Every mutation updates ``visits`` and
	``visit_count`` together, and readers only ever receive copies.
	"""

	def __init__(self, clock: Callable[[], float] = time.time) -> None:
		self._sessions: Dict[str, TrackingSession] = {}
		self._lock = threading.Lock()
		self._clock = clock

	def register(
		self,
		session_id: str,
		label: str,
		notify_url: Optional[str],
		message: str,
		metadata: Optional[Dict[str, Any]] = None,
	) -> TrackingSession:
		"""Create a session, replacing any existing one with the same id."""
		state = TrackingSession(
			session_id=session_id,
			label=label,
			notify_url=notify_url,
			message=message,
			metadata=copy.deepcopy(dict(metadata or {})),
			created_at=self._clock(),
		)
		with self._lock:
			replaced = session_id in self._sessions
			# Re-insert so a replaced id moves to the end of the listing order.
			self._sessions.pop(session_id, None)
			self._sessions[session_id] = state
			snapshot = self._snapshot(state)
		if replaced:
			LOGGER.info("Re-registered session %s; previous visits discarded", session_id)
		else:
			LOGGER.info("Registered session %s for %s", session_id, label)
		return snapshot

	def record_visit(self, session_id: str, visit: Visit) -> int:
		"""Append a visit and return the session's new visit count."""
		with self._lock:
			state = self._require(session_id)
			state.visits.append(visit)
			state.visit_count += 1
			return state.visit_count

	def enrich_last_visit(self, session_id: str, extra: Dict[str, Any]) -> Visit:
		"""Attach browser details to the most recent visit, replacing older ones."""
		with self._lock:
			state = self._require(session_id)
			if not state.visits:
				raise NoVisitsError(session_id)
			enriched = dataclasses.replace(state.visits[-1], enrichment=copy.deepcopy(dict(extra)))
			state.visits[-1] = enriched
			return copy.deepcopy(enriched)

	def get(self, session_id: str) -> TrackingSession:
		"""Return a copy of a session or raise SessionNotFoundError."""
		with self._lock:
			return self._snapshot(self._require(session_id))

	def list_sessions(self) -> List[SessionSummary]:
		"""Return summaries of every live session in registration order."""
		with self._lock:
			return [state.summary() for state in self._sessions.values()]

	def size(self) -> int:
		with self._lock:
			return len(self._sessions)

	def __len__(self) -> int:
		return self.size()

	def __contains__(self, session_id: object) -> bool:
		with self._lock:
			return session_id in self._sessions

	def prune_older_than(self, cutoff: float) -> List[str]:
		"""Delete sessions created before ``cutoff`` and return their ids."""
		with self._lock:
			expired = [sid for sid, state in self._sessions.items() if state.created_at < cutoff]
			for sid in expired:
				del self._sessions[sid]
		return expired

	def clear(self) -> None:
		with self._lock:
			self._sessions.clear()

	def now(self) -> float:
		return self._clock()

	def _require(self, session_id: str) -> TrackingSession:
		state = self._sessions.get(session_id)
		if state is None:
			raise SessionNotFoundError(session_id)
		return state

	@staticmethod
	def _snapshot(state: TrackingSession) -> TrackingSession:
		return dataclasses.replace(
			state,
			metadata=copy.deepcopy(state.metadata),
			visits=copy.deepcopy(state.visits),
		)
