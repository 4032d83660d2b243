"""FastAPI routes for the figure catalog and figure credentials."""

from fastapi import APIRouter, Depends, HTTPException, Request

from controllers.figure_controller import get_signed_url, issue_agent_token, list_figures
from utils.request_guards import require_same_origin

router = APIRouter(prefix="/api")


@router.get("/figures")
async def list_figures_route():
	return {"figures": list_figures()}


@router.get("/figure-agent-key/{figure_id}", dependencies=[Depends(require_same_origin)])
async def figure_agent_key_route(request: Request, figure_id: str):
	"""Return a short-lived opaque token for the figure's agent."""
	try:
		return issue_agent_token(request, figure_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/signed-url", dependencies=[Depends(require_same_origin)])
async def signed_url_route(request: Request, figureId: str = "einstein"):
	"""Return a provider signed URL for a duplex voice session."""
	try:
		return await get_signed_url(request, figureId)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
