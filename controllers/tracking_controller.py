"""Tracking session helpers shared by the API and tracking routes."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request

from models.session_models import UNKNOWN, Visit
from services.session_registry import NoVisitsError, SessionNotFoundError, VisitRegistry

LOGGER = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
	"""Return the visitor address, preferring proxy headers over the socket peer."""
	forwarded = request.headers.get("x-forwarded-for")
	if forwarded:
		first = forwarded.split(",")[0].strip()
		if first:
			return first
	real_ip = (request.headers.get("x-real-ip") or "").strip()
	if real_ip:
		return real_ip
	if request.client is not None and request.client.host:
		return request.client.host
	return UNKNOWN


def _registry(request: Request) -> VisitRegistry:
	return request.app.state.registry


async def register_session(
	request: Request,
	session_id: str,
	label: str,
	notify_url: Optional[str],
	message: str,
	metadata: Dict[str, Any],
) -> Dict[str, Any]:
	"""Create or replace a tracking session."""
	_registry(request).register(session_id, label, notify_url, message, metadata)
	return {"success": True, "session_id": session_id}


async def track_visit(request: Request, session_id: str) -> Dict[str, Any]:
	"""Record a visit for the session, schedule its notification and return the visit number."""
	registry = _registry(request)
	try:
		registry.get(session_id)
	except SessionNotFoundError as exc:
		raise HTTPException(status_code=404, detail="Session not found") from exc

	headers = request.headers
	ip = client_ip(request)
	geo = await request.app.state.geo_resolver.resolve(ip)
	visit = Visit(
		ip=ip,
		user_agent=headers.get("user-agent") or UNKNOWN,
		referer=headers.get("referer") or "Direct",
		accept_language=headers.get("accept-language") or UNKNOWN,
		accept_encoding=headers.get("accept-encoding") or UNKNOWN,
		geo=geo,
		timestamp=time.time(),
	)

	# The session may have been swept while the geo lookup was in flight.
	try:
		visit_count = registry.record_visit(session_id, visit)
		session = registry.get(session_id)
	except SessionNotFoundError as exc:
		raise HTTPException(status_code=404, detail="Session not found") from exc

	LOGGER.info("Recorded visit #%d for session %s from %s", visit_count, session_id, ip)
	request.app.state.notifier.dispatch(session, visit, visit_count)
	return {"session_id": session_id, "visit_count": visit_count}


async def enrich_last_visit(request: Request, session_id: str, extra: Dict[str, Any]) -> Dict[str, Any]:
	"""Attach browser details to the latest visit of a session."""
	registry = _registry(request)
	try:
		registry.enrich_last_visit(session_id, extra)
		session = registry.get(session_id)
	except SessionNotFoundError as exc:
		raise HTTPException(status_code=404, detail="Session not found") from exc
	except NoVisitsError as exc:
		raise HTTPException(status_code=409, detail=str(exc)) from exc
	return {"success": True, "session_id": session_id, "visit_count": session.visit_count}


async def get_session(request: Request, session_id: str) -> Dict[str, Any]:
	"""Return the full snapshot of one session."""
	try:
		session = _registry(request).get(session_id)
	except SessionNotFoundError as exc:
		raise HTTPException(status_code=404, detail="Session not found") from exc
	return session.to_dict()


async def list_sessions(request: Request) -> Dict[str, Any]:
	"""Return summaries of all live sessions."""
	summaries = _registry(request).list_sessions()
	return {
		"total_sessions": len(summaries),
		"sessions": [
			{
				"session_id": summary.session_id,
				"label": summary.label,
				"created_at": summary.created_at,
				"visit_count": summary.visit_count,
				"message": summary.message,
			}
			for summary in summaries
		],
	}
