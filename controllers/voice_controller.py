"""Proxy helpers that forward conversation traffic to the voice provider."""

from __future__ import annotations

import base64
import logging
import time
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import Response

from controllers.figure_controller import require_elevenlabs
from services.catalog import get_default_figure, get_figure
from services.conversation.session_controller import MISSING_REPLY_TEXT
from services.credentials import CredentialIssuer
from services.elevenlabs.client import ElevenLabsError
from services.transports.base import SessionClosedError, Transport, TransportError
from services.transports.response_parser import extract_reply_text
from services.transports.scripted import scripted_reply

logger = logging.getLogger(__name__)


def _provider_error(message: str, exc: ElevenLabsError) -> HTTPException:
	return HTTPException(status_code=500, detail={"error": message, "details": exc.details or str(exc)})


async def _close_quietly(transport: Transport, token: str) -> None:
	try:
		await transport.close(token)
	except Exception as exc:
		logger.warning("Failed to close %s session %s: %s", transport.name, token, exc)


async def start_conversation(request: Request, figure_id: Optional[str], token: Optional[str]) -> Dict[str, Any]:
	"""Start a provider conversation for a figure (by id or by issued token)."""
	issuer: CredentialIssuer = request.app.state.credential_issuer
	if token:
		try:
			figure_id = issuer.redeem(token)
		except KeyError as exc:
			raise HTTPException(status_code=401, detail=str(exc)) from exc
	if not figure_id:
		raise HTTPException(status_code=400, detail="Missing figure id or token")
	agent_key = issuer.agent_key(figure_id)
	if agent_key is None:
		raise HTTPException(status_code=404, detail="Agent key not found for the specified figure")
	client = require_elevenlabs(request)
	try:
		conversation_id = await client.start_conversation(agent_key)
	except ElevenLabsError as exc:
		raise _provider_error("Failed to start conversation", exc) from exc
	return {"conversation_id": conversation_id}


async def conversation_response(request: Request, message: str, conversation_id: str) -> Dict[str, Any]:
	"""Forward one message into an existing provider conversation."""
	if not message.strip() or not conversation_id:
		raise HTTPException(status_code=400, detail="Missing message or conversation ID")
	client = require_elevenlabs(request)
	try:
		data = await client.send_message(conversation_id, message)
	except ElevenLabsError as exc:
		raise _provider_error("Failed to get conversation response", exc) from exc
	return {
		"conversation_id": data.get("conversation_id") or conversation_id,
		"response": extract_reply_text(data) or MISSING_REPLY_TEXT,
	}


async def conversation_audio(request: Request, conversation_id: str) -> Response:
	"""Return the MPEG audio of the latest reply in a provider conversation."""
	client = require_elevenlabs(request)
	try:
		audio = await client.get_conversation_audio(conversation_id)
	except ElevenLabsError as exc:
		raise _provider_error("Failed to get audio", exc) from exc
	return Response(content=audio, media_type="audio/mpeg")


async def agent_audio(
	request: Request,
	message: str,
	figure_id: Optional[str],
	conversation_id: Optional[str],
) -> Dict[str, Any]:
	"""One-shot exchange through the configured transport: reply text plus base64 audio.

	Safe to retry: a missing or stale ``conversation_id`` opens a fresh session.
	"""
	if not message.strip():
		raise HTTPException(status_code=400, detail="Missing message parameter")
	figure_id = figure_id or get_default_figure().id
	if get_figure(figure_id) is None:
		raise HTTPException(status_code=404, detail=f"Unknown figure: {figure_id}")

	transport: Transport = request.app.state.transport
	opened: Optional[str] = None
	try:
		token = conversation_id
		if not token:
			token = opened = await transport.open(figure_id)
		try:
			reply = await transport.submit(token, message.strip(), figure_id)
		except SessionClosedError:
			if not conversation_id:
				raise
			token = opened = await transport.open(figure_id)
			reply = await transport.submit(token, message.strip(), figure_id)
	except TransportError as exc:
		logger.error("agent-audio exchange failed for %s: %s", figure_id, exc)
		if opened is not None:
			await _close_quietly(transport, opened)
		raise HTTPException(
			status_code=500, detail={"error": "Failed to process request", "details": str(exc)}
		) from exc

	return {
		"conversation_id": reply.session_id or token,
		"response": (reply.text or "").strip() or MISSING_REPLY_TEXT,
		"audio": base64.b64encode(reply.audio).decode("ascii") if reply.audio else None,
		"mime_type": reply.mime_type if reply.audio else None,
	}


def legacy_conversation(message: str, agent_key: str) -> Dict[str, Any]:
	"""Scripted reply kept for clients of the original conversation endpoint."""
	if not message.strip() or not agent_key:
		raise HTTPException(status_code=400, detail="Missing message or agentKey")
	conversation_id = f"einstein-{int(time.time() * 1000)}"
	return {"success": True, "response": scripted_reply(message), "conversation_id": conversation_id}
