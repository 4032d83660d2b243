"""Dispatch conversation websocket events to the store and session controller."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Dict, Optional, Set

from fastapi import WebSocket

from models.session_models import Message, SessionState
from services.conversation.audio_player import AudioPlayer
from services.conversation.session_controller import SessionController
from services.conversation.store import ConversationStore
from services.conversation.ws_audio_sink import WebSocketAudioSink
from services.transports.base import Transport

logger = logging.getLogger(__name__)


class ConversationSocketHandler:
	"""Own one client's store, controller, and audio slot for the life of a websocket."""

	def __init__(
		self,
		websocket: WebSocket,
		store: ConversationStore,
		transport: Transport,
		*,
		close_timeout: float = 3.0,
	) -> None:
		self.websocket = websocket
		self.store = store
		self.sink = WebSocketAudioSink(self._send)
		self.player = AudioPlayer(self.sink)
		self.controller = SessionController(store, transport, self.player, close_timeout=close_timeout)
		self._tasks: Set[asyncio.Task] = set()
		self._send_lock = asyncio.Lock()
		self._submit_pending = False
		store.add_listener(self._on_message)
		self.controller.add_listener(self._on_state)

	async def open(self) -> None:
		"""Load persisted transcripts and tell the client where things stand."""
		await self.store.load()
		await self._send(
			{
				"type": "conversation.ready",
				"client_id": self.store.owner_id,
				"figure_id": self.store.active_figure_id,
				"state": self.controller.state.value,
			}
		)
		await self._send(self._log_payload(None))

	async def handle(self, payload: Dict[str, Any]) -> None:
		"""Process a single inbound websocket payload."""
		request_id = payload.get("request_id")
		message_type = payload.get("type")
		try:
			if message_type == "figure.select":
				result = await self._select_figure(payload)
			elif message_type == "session.start":
				self._spawn(
					self.controller.start(
						payload.get("figure_id") or None,
						microphone_granted=payload.get("microphone_granted", True) is not False,
					)
				)
				result = None
			elif message_type == "session.end":
				result = {"type": "session.state", **self._state_fields(await self.controller.end())}
			elif message_type == "session.retry":
				result = {"type": "session.state", **self._state_fields(await self.controller.retry())}
			elif message_type == "utterance.submit":
				result = self._submit(payload)
			elif message_type == "log.get":
				result = self._log_payload(payload.get("figure_id"))
			elif message_type == "log.clear":
				figure_id = payload.get("figure_id") or None
				await self.store.clear_log(figure_id)
				result = self._log_payload(figure_id)
			elif message_type == "audio.ended":
				self.sink.mark_finished(str(payload.get("clip_id") or ""))
				result = None
			else:
				raise ValueError("Unsupported message type.")
			if result is not None:
				result["request_id"] = request_id
				await self._send(result)
		except Exception as exc:
			await self._send_error(request_id, str(exc))

	async def close(self) -> None:
		"""Cancel in-flight work and end the session (client disconnected)."""
		for task in list(self._tasks):
			task.cancel()
		if self._tasks:
			await asyncio.gather(*self._tasks, return_exceptions=True)
		await self.controller.shutdown()

	async def _select_figure(self, payload: Dict[str, Any]) -> Dict[str, Any]:
		figure_id = (payload.get("figure_id") or "").strip()
		if not figure_id:
			raise ValueError("figure_id is required.")
		if not await self.controller.change_figure(figure_id):
			raise ValueError(f"Unknown figure: {figure_id}")
		return self._log_payload(figure_id)

	def _submit(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
		text = (payload.get("text") or "").strip()
		if not text:
			raise ValueError("Utterance text is required.")
		if self.controller.state is not SessionState.OPEN:
			return {"type": "utterance.rejected", "reason": "Session is not open."}
		if self.store.is_responding or self._submit_pending:
			return {"type": "utterance.rejected", "reason": "Still waiting for the previous reply."}
		self._submit_pending = True
		self._spawn(self._run_submit(text))
		return None

	async def _run_submit(self, text: str) -> None:
		try:
			await self.controller.submit(text)
		finally:
			self._submit_pending = False

	def _spawn(self, coro: Awaitable[Any]) -> None:
		task = asyncio.ensure_future(coro)
		self._tasks.add(task)
		task.add_done_callback(self._task_done)

	def _task_done(self, task: asyncio.Task) -> None:
		self._tasks.discard(task)
		if not task.cancelled() and task.exception() is not None:
			logger.error("Conversation task failed: %s", task.exception())

	def _log_payload(self, figure_id: Optional[str]) -> Dict[str, Any]:
		target = figure_id or self.store.active_figure_id
		return {
			"type": "conversation.log",
			"figure_id": target,
			"messages": [msg.to_dict() for msg in self.store.messages(target)],
		}

	def _state_fields(self, state: SessionState) -> Dict[str, Any]:
		return {
			"state": state.value,
			"figure_id": self.controller.figure_id,
			"responding": self.store.is_responding,
		}

	async def _on_message(self, message: Message) -> None:
		await self._send(
			{
				"type": "conversation.message",
				"message": message.to_dict(),
				"responding": self.store.is_responding,
			}
		)

	async def _on_state(self, state: SessionState, figure_id: Optional[str]) -> None:
		await self._send({"type": "session.state", **self._state_fields(state)})

	async def _send_error(self, request_id: Any, detail: str) -> None:
		await self._send({"type": "error", "request_id": request_id, "detail": detail})

	async def _send(self, payload: Dict[str, Any]) -> None:
		async with self._send_lock:
			await self.websocket.send_text(json.dumps(payload))
