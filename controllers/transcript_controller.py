"""Read and clear persisted transcripts outside a live websocket."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException, Request

from services.catalog import get_figure
from services.conversation.store import ConversationStore


async def _load_store(request: Request, client_id: str) -> ConversationStore:
	if not client_id.strip():
		raise HTTPException(status_code=400, detail="Missing client ID")
	store = ConversationStore(request.app.state.transcript_dal, client_id)
	await store.load()
	return store


async def get_transcripts(request: Request, client_id: str) -> Dict[str, Any]:
	"""Return every figure's log for ``client_id``."""
	store = await _load_store(request, client_id)
	return {
		"client_id": client_id,
		"conversations": {
			figure_id: [msg.to_dict() for msg in messages]
			for figure_id, messages in store.snapshot().items()
		},
	}


async def clear_transcript(request: Request, client_id: str, figure_id: str) -> Dict[str, Any]:
	"""Remove one figure's log for ``client_id``; other figures are untouched."""
	if get_figure(figure_id) is None:
		raise HTTPException(status_code=404, detail=f"Unknown figure: {figure_id}")
	store = await _load_store(request, client_id)
	cleared = await store.clear_log(figure_id)
	return {"client_id": client_id, "figure_id": figure_id, "cleared": cleared}
