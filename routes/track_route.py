from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse, RedirectResponse

from controllers.tracking_controller import track_visit

router = APIRouter()


@router.get("/track/{session_id}")
async def track_route(request: Request, session_id: str):
	"""Record the visit, then send the visitor on to the landing page."""
	try:
		await track_visit(request, session_id)
	except HTTPException as exc:
		if exc.status_code == 404:
			return PlainTextResponse("Session not found", status_code=404)
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
	return RedirectResponse(request.app.state.landing_url, status_code=302)
