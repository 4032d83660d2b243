"""Figure catalog and credential helpers."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import HTTPException, Request

from services.catalog import FIGURES, get_figure
from services.credentials import CredentialIssuer
from services.elevenlabs.client import ElevenLabsClient, ElevenLabsError

logger = logging.getLogger(__name__)


def require_elevenlabs(request: Request) -> ElevenLabsClient:
	"""Return the shared ElevenLabs client or fail with a configuration error."""
	client = getattr(request.app.state, "elevenlabs_client", None)
	if client is None:
		raise HTTPException(status_code=500, detail="Server configuration error: Missing API key")
	return client


def list_figures() -> List[Dict[str, Any]]:
	"""Return the public view of every catalog figure."""
	return [figure.public_view() for figure in FIGURES]


def issue_agent_token(request: Request, figure_id: str) -> Dict[str, Any]:
	"""Issue a short-lived opaque credential for ``figure_id``.

	The agent key itself never leaves the server.
	"""
	issuer: CredentialIssuer = request.app.state.credential_issuer
	if get_figure(figure_id) is None or not issuer.has_credential(figure_id):
		raise HTTPException(status_code=404, detail="Agent key not found for the specified figure")
	return issuer.issue(figure_id).to_response()


async def get_signed_url(request: Request, figure_id: str) -> Dict[str, Any]:
	"""Return a provider signed URL for a duplex voice session with ``figure_id``."""
	issuer: CredentialIssuer = request.app.state.credential_issuer
	agent_id = issuer.agent_key(figure_id)
	if agent_id is None:
		raise HTTPException(status_code=404, detail="Agent key not found for the specified figure")
	client = require_elevenlabs(request)
	try:
		signed_url = await client.get_signed_url(agent_id)
	except ElevenLabsError as exc:
		raise HTTPException(
			status_code=500,
			detail={"error": "Failed to generate signed URL", "details": exc.details or str(exc)},
		) from exc
	return {"signedUrl": signed_url}
