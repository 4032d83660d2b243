"""Per-owner conversation transcripts with durable persistence."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional

from dal.transcript_dal import TranscriptDAL
from models.session_models import Message, Sender
from services.catalog import get_default_figure, get_figure

STORAGE_NAMESPACE = "historai-conversations"

logger = logging.getLogger(__name__)

MessageListener = Callable[[Message], Awaitable[None]]


def storage_key(owner_id: str) -> str:
	return f"{STORAGE_NAMESPACE}:{owner_id}"


def serialize_logs(logs: Dict[str, List[Message]]) -> str:
	return json.dumps({figure_id: [msg.to_dict() for msg in messages] for figure_id, messages in logs.items()})


def deserialize_logs(payload: str) -> Dict[str, List[Message]]:
	"""Parse a persisted collection, raising on any structural problem."""
	raw = json.loads(payload)
	if not isinstance(raw, dict):
		raise ValueError("Persisted transcripts must be a JSON object.")
	logs: Dict[str, List[Message]] = {}
	for figure_id, entries in raw.items():
		if not isinstance(entries, list):
			raise ValueError(f"Transcript for {figure_id!r} must be a list.")
		logs[figure_id] = [Message.from_dict(entry) for entry in entries]
	return logs


class ConversationStore:
	"""Hold the active figure, each figure's message log, and the responding flag."""

	def __init__(
		self,
		dal: TranscriptDAL,
		owner_id: str,
		*,
		clock: Callable[[], float] = time.time,
	) -> None:
		self._dal = dal
		self.owner_id = owner_id
		self.namespace = storage_key(owner_id)
		self._clock = clock
		self._logs: Dict[str, List[Message]] = {}
		self._active_figure_id = get_default_figure().id
		self._responding = False
		self._last_timestamp = 0
		self._persist_lock = asyncio.Lock()
		self._listeners: List[MessageListener] = []

	@property
	def active_figure_id(self) -> str:
		return self._active_figure_id

	@property
	def is_responding(self) -> bool:
		return self._responding

	def add_listener(self, listener: MessageListener) -> None:
		"""Register an async callback invoked with every appended message."""
		self._listeners.append(listener)

	async def load(self) -> None:
		"""Restore persisted logs; any failure leaves an empty collection."""
		try:
			payload = await self._dal.load(self.namespace)
			logs = deserialize_logs(payload) if payload else {}
		except Exception as exc:
			logger.warning("Discarding unreadable transcripts for %s: %s", self.namespace, exc)
			logs = {}
		self._logs = logs
		self._last_timestamp = max(
			(msg.timestamp for messages in logs.values() for msg in messages),
			default=0,
		)

	def select_figure(self, figure_id: str) -> bool:
		"""Set the active figure. Unknown ids are ignored with a warning."""
		if get_figure(figure_id) is None:
			logger.warning("Ignoring selection of unknown figure %r", figure_id)
			return False
		self._active_figure_id = figure_id
		return True

	def messages(self, figure_id: Optional[str] = None) -> List[Message]:
		return list(self._logs.get(figure_id or self._active_figure_id, []))

	def snapshot(self) -> Dict[str, List[Message]]:
		return {figure_id: list(messages) for figure_id, messages in self._logs.items()}

	async def append_user_message(self, text: str, figure_id: Optional[str] = None) -> Optional[Message]:
		"""Record a user utterance and mark the store as awaiting a reply."""
		message = self._append(Sender.USER, text, figure_id)
		if message is None:
			return None
		self._responding = True
		await self._persist()
		await self._notify(message)
		return message

	async def append_agent_message(self, text: str, figure_id: Optional[str] = None) -> Optional[Message]:
		"""Record a figure reply and clear the responding flag."""
		message = self._append(Sender.FIGURE, text, figure_id)
		if message is None:
			return None
		self._responding = False
		await self._persist()
		await self._notify(message)
		return message

	def release_responding(self) -> None:
		"""Clear the responding flag without recording a reply (failure/teardown paths)."""
		self._responding = False

	async def clear_log(self, figure_id: Optional[str] = None) -> bool:
		"""Remove the whole log of one figure (default: the active one)."""
		target = figure_id or self._active_figure_id
		if self._logs.pop(target, None) is None:
			return False
		await self._persist()
		return True

	def _append(self, sender: Sender, text: str, figure_id: Optional[str]) -> Optional[Message]:
		cleaned = (text or "").strip()
		if not cleaned:
			return None
		target = figure_id or self._active_figure_id
		timestamp = self._next_timestamp()
		message = Message(
			id=f"msg-{timestamp}-{'user' if sender is Sender.USER else 'figure'}",
			sender=sender,
			text=cleaned,
			timestamp=timestamp,
			figure_id=target,
		)
		self._logs.setdefault(target, []).append(message)
		return message

	def _next_timestamp(self) -> int:
		# Ids are derived from the timestamp, so it must strictly increase.
		now = int(self._clock() * 1000)
		timestamp = now if now > self._last_timestamp else self._last_timestamp + 1
		self._last_timestamp = timestamp
		return timestamp

	async def _persist(self) -> None:
		# In-memory logs stay authoritative when the write fails; the next mutation retries it.
		async with self._persist_lock:
			payload = serialize_logs(self._logs)
			try:
				await self._dal.save(self.namespace, payload)
			except Exception as exc:
				logger.error("Failed to persist transcripts for %s: %s", self.namespace, exc)

	async def _notify(self, message: Message) -> None:
		for listener in list(self._listeners):
			try:
				await listener(message)
			except Exception as exc:
				logger.warning("Message listener failed: %s", exc)
