"""FastAPI routes for persisted transcripts."""

from fastapi import APIRouter, Depends, HTTPException, Request

from controllers.transcript_controller import clear_transcript, get_transcripts
from utils.request_guards import require_same_origin

router = APIRouter(prefix="/api/transcripts", dependencies=[Depends(require_same_origin)])


@router.get("/{client_id}")
async def get_transcripts_route(request: Request, client_id: str):
	try:
		return await get_transcripts(request, client_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/{client_id}/{figure_id}")
async def clear_transcript_route(request: Request, client_id: str, figure_id: str):
	try:
		return await clear_transcript(request, client_id, figure_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
