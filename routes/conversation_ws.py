"""WebSocket endpoint driving one client's conversation sessions."""

from __future__ import annotations

import json
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect

from services.conversation.store import ConversationStore
from services.conversation.ws_conversation import ConversationSocketHandler

router = APIRouter()


@router.websocket("/ws/conversation")
async def conversation_socket(websocket: WebSocket, client_id: Optional[str] = None):
	"""Run the store, session controller, and audio slot for one browser tab."""
	await websocket.accept()
	state = websocket.app.state
	store = ConversationStore(state.transcript_dal, (client_id or "").strip() or uuid4().hex)
	handler = ConversationSocketHandler(
		websocket,
		store,
		state.transport,
		close_timeout=state.settings.session_close_timeout_seconds,
	)
	try:
		await handler.open()
		while True:
			try:
				raw = await websocket.receive_text()
			except WebSocketDisconnect:
				break
			try:
				payload = json.loads(raw)
			except Exception:
				await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be JSON"}))
				continue
			if not isinstance(payload, dict):
				await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be a JSON object"}))
				continue
			await handler.handle(payload)
	finally:
		await handler.close()
	try:
		await websocket.close()
	except Exception:
		pass
