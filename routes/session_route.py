"""FastAPI routes for registering and inspecting tracking sessions."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, HTTPException, Request
from pydantic import BaseModel, Field

from controllers.tracking_controller import enrich_last_visit, get_session, list_sessions, register_session

router = APIRouter(prefix="/api")


class RegisterPayload(BaseModel):
	session_id: str
	label: str = ""
	notify_url: Optional[str] = None
	message: str = ""
	metadata: Dict[str, Any] = Field(default_factory=dict)


@router.post("/register")
async def register_route(request: Request, payload: RegisterPayload):
	try:
		return await register_session(
			request, payload.session_id, payload.label, payload.notify_url, payload.message, payload.metadata
		)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/sessions/{session_id}/enrich")
async def enrich_route(request: Request, session_id: str, payload: Dict[str, Any] = Body(...)):
	"""Attach client-side browser details (any JSON object) to the most recent visit."""
	try:
		return await enrich_last_visit(request, session_id, payload)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/sessions/{session_id}")
async def get_session_route(request: Request, session_id: str):
	try:
		return await get_session(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/admin/sessions")
async def list_sessions_route(request: Request):
	try:
		return await list_sessions(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
