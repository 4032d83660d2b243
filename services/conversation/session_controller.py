"""State machine driving one external voice/text session at a time."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from models.session_models import Message, SessionState
from services.catalog import get_figure
from services.conversation.audio_player import AudioPlayer
from services.conversation.store import ConversationStore
from services.transports.base import PermissionDeniedError, SessionClosedError, Transport

TECHNICAL_DIFFICULTIES = "I'm experiencing some technical difficulties. Please try again."
MISSING_REPLY_TEXT = "I'm sorry, I couldn't process that question at the moment."
MICROPHONE_REQUIRED = (
	"I can't hear you yet. Please allow microphone access in your browser, then start the conversation again."
)

logger = logging.getLogger(__name__)

StateListener = Callable[[SessionState, Optional[str]], Awaitable[None]]


class SessionController:
	"""Open, feed, and close sessions for the store's selected figure.

	States move ``idle -> connecting -> open -> closing -> idle``; ``error`` is
	reachable from ``connecting`` or ``open`` and left only through ``retry``.
	Every collaborator failure is turned into a transition or a synthetic
	agent message, so no public coroutine raises for transport problems.
	"""

	def __init__(
		self,
		store: ConversationStore,
		transport: Transport,
		player: Optional[AudioPlayer] = None,
		*,
		close_timeout: float = 3.0,
	) -> None:
		self.store = store
		self.transport = transport
		self.player = player
		self.close_timeout = close_timeout
		self._state = SessionState.IDLE
		self._figure_id: Optional[str] = None
		self._token: Optional[str] = None
		# Bumped whenever a session is abandoned; late results from older generations are dropped.
		self._generation = 0
		self._closed = asyncio.Event()
		self._closed.set()
		self._listeners: List[StateListener] = []

	@property
	def state(self) -> SessionState:
		return self._state

	@property
	def figure_id(self) -> Optional[str]:
		"""Figure the current session is bound to, if any."""
		return self._figure_id

	@property
	def token(self) -> Optional[str]:
		return self._token

	def add_listener(self, listener: StateListener) -> None:
		self._listeners.append(listener)

	async def start(self, figure_id: Optional[str] = None, *, microphone_granted: bool = True) -> SessionState:
		"""Open a session for ``figure_id`` (default: the store's active figure)."""
		target = figure_id or self.store.active_figure_id
		if get_figure(target) is None:
			logger.warning("Cannot start a session for unknown figure %r", target)
			return self._state
		if self._state in (SessionState.ERROR, SessionState.CONNECTING):
			return self._state
		if self._state is SessionState.OPEN:
			if self._figure_id == target:
				return self._state
			await self.end()
		if self._state is SessionState.CLOSING:
			await self._closed.wait()
		if self._state is not SessionState.IDLE:
			return self._state

		self.store.select_figure(target)
		self._generation += 1
		generation = self._generation
		self._figure_id = target
		await self._set_state(SessionState.CONNECTING)

		try:
			if self.transport.requires_microphone and not microphone_granted:
				raise PermissionDeniedError("Microphone access was denied.")
			token = await self.transport.open(target)
		except Exception as exc:
			if generation != self._generation:
				logger.info("Ignoring failed open for %s; the session was already cancelled", target)
				return self._state
			logger.error("Failed to open %s session for %s: %s", self.transport.name, target, exc)
			await self._set_state(SessionState.ERROR)
			notice = MICROPHONE_REQUIRED if isinstance(exc, PermissionDeniedError) else TECHNICAL_DIFFICULTIES
			await self.store.append_agent_message(notice, figure_id=target)
			return self._state

		if generation != self._generation:
			logger.info("Discarding %s session opened after it was cancelled", target)
			await self._close_quietly(token)
			return self._state

		self._token = token
		await self._set_state(SessionState.OPEN)
		return self._state

	async def submit(self, utterance: str) -> Optional[Message]:
		"""Send one utterance and record the reply. Returns the agent message, if any."""
		if self._state is not SessionState.OPEN:
			logger.info("Rejecting utterance while session is %s", self._state.value)
			return None
		if self.store.is_responding:
			logger.info("Rejecting utterance while a reply is still pending")
			return None

		token, figure_id, generation = self._token, self._figure_id, self._generation
		user_message = await self.store.append_user_message(utterance, figure_id=figure_id)
		if user_message is None:
			return None
		if generation != self._generation:
			logger.info("Not forwarding utterance for %s; its session ended while it was recorded", figure_id)
			return None

		try:
			reply = await self.transport.submit(token, user_message.text, figure_id)
		except Exception as exc:
			if generation != self._generation:
				return None
			logger.error("Utterance submission failed for %s: %s", figure_id, exc)
			if isinstance(exc, SessionClosedError):
				self._token = None
				await self._set_state(SessionState.ERROR)
			await self.store.append_agent_message(TECHNICAL_DIFFICULTIES, figure_id=figure_id)
			return None

		if generation != self._generation:
			logger.info("Discarding late reply for %s; its session has ended", figure_id)
			return None

		text = getattr(reply, "text", None)
		if not isinstance(text, str) or not text.strip():
			logger.warning("Reply for %s carried no text; using fallback", figure_id)
			text = MISSING_REPLY_TEXT
		session_id = getattr(reply, "session_id", None)
		if session_id:
			self._token = session_id

		agent_message = await self.store.append_agent_message(text, figure_id=figure_id)

		audio = getattr(reply, "audio", None)
		if audio and self.player is not None:
			try:
				await self.player.play(audio, getattr(reply, "mime_type", None))
			except Exception as exc:
				logger.warning("Could not play reply audio for %s: %s", figure_id, exc)
		return agent_message

	async def end(self) -> SessionState:
		"""Terminate the current session; close failures never block the return to idle."""
		if self._state is SessionState.CONNECTING:
			self._generation += 1
			self.store.release_responding()
			self._figure_id = None
			await self._set_state(SessionState.IDLE)
			return self._state
		if self._state is not SessionState.OPEN:
			return self._state

		self._generation += 1
		token = self._token
		self._token = None
		self._closed.clear()
		await self._set_state(SessionState.CLOSING)
		self.store.release_responding()
		try:
			if self.player is not None:
				await self.player.stop()
			await self._close_quietly(token)
		finally:
			self._figure_id = None
			self._state = SessionState.IDLE
			self._closed.set()
		await self._notify()
		return self._state

	async def change_figure(self, figure_id: str) -> bool:
		"""Select ``figure_id`` and tear down any session bound to another figure."""
		if not self.store.select_figure(figure_id):
			return False
		if self._state in (SessionState.OPEN, SessionState.CONNECTING) and self._figure_id != figure_id:
			await self.end()
		return True

	async def retry(self) -> SessionState:
		"""Leave the error state so a new session may be started."""
		if self._state is not SessionState.ERROR:
			return self._state
		self._token = None
		self._figure_id = None
		self.store.release_responding()
		await self._set_state(SessionState.IDLE)
		return self._state

	async def shutdown(self) -> None:
		"""End whatever is running and silence playback (client went away)."""
		await self.end()
		if self.player is not None:
			await self.player.stop()

	async def _close_quietly(self, token: Optional[str]) -> None:
		if token is None:
			return
		try:
			await asyncio.wait_for(self.transport.close(token), timeout=self.close_timeout)
		except asyncio.TimeoutError:
			logger.warning("Timed out closing %s session %s", self.transport.name, token)
		except Exception as exc:
			logger.warning("Failed to close %s session %s: %s", self.transport.name, token, exc)

	async def _set_state(self, state: SessionState) -> None:
		self._state = state
		await self._notify()

	async def _notify(self) -> None:
		state, figure_id = self._state, self._figure_id
		for listener in list(self._listeners):
			try:
				await listener(state, figure_id)
			except Exception as exc:
				logger.warning("Session state listener failed: %s", exc)
