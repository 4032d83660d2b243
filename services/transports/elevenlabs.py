"""Transports backed by the ElevenLabs conversational and speech APIs."""

from __future__ import annotations

import logging
import time
from typing import Dict, Optional

from models.session_models import AgentReply
from services.catalog import EINSTEIN_VOICE_ID, get_figure
from services.elevenlabs.client import ElevenLabsClient, ElevenLabsError
from services.transports.base import SessionClosedError, Transport, TransportError
from services.transports.prompts import persona_system_prompt
from services.transports.response_parser import extract_reply_text

logger = logging.getLogger(__name__)


class _AgentKeyMixin:
	"""Resolve a figure's agent credential from the server-side map."""

	_agent_keys: Dict[str, str]

	def _agent_key(self, figure_id: str) -> str:
		agent_key = self._agent_keys.get(figure_id)
		if not agent_key:
			raise TransportError(f"No agent key configured for figure {figure_id!r}")
		return agent_key


class ElevenLabsConversationTransport(_AgentKeyMixin, Transport):
	"""REST conversation: one provider conversation per session, audio fetched per reply."""

	name = "elevenlabs-conversation"

	def __init__(self, client: ElevenLabsClient, agent_keys: Dict[str, str]) -> None:
		self.client = client
		self._agent_keys = dict(agent_keys)

	async def open(self, figure_id: str) -> str:
		agent_key = self._agent_key(figure_id)
		try:
			return await self.client.start_conversation(agent_key)
		except ElevenLabsError as exc:
			raise TransportError(f"Failed to start conversation: {exc}") from exc

	async def submit(self, token: str, text: str, figure_id: str) -> AgentReply:
		try:
			data = await self.client.send_message(token, text)
		except ElevenLabsError as exc:
			if exc.status_code == 404:
				raise SessionClosedError(f"Conversation {token} is no longer available") from exc
			raise TransportError(f"Failed to get conversation response: {exc}") from exc

		conversation_id = data.get("conversation_id") or token
		audio: Optional[bytes] = None
		try:
			audio = await self.client.get_conversation_audio(conversation_id)
		except ElevenLabsError as exc:
			logger.warning("No audio for conversation %s: %s", conversation_id, exc)
		return AgentReply(
			text=extract_reply_text(data),
			audio=audio or None,
			mime_type="audio/mpeg",
			session_id=conversation_id,
		)


class ElevenLabsAgentAudioTransport(_AgentKeyMixin, Transport):
	"""One-shot exchange: character chat for the text, then text-to-speech for the audio."""

	name = "elevenlabs-agent-audio"

	def __init__(self, client: ElevenLabsClient, agent_keys: Dict[str, str]) -> None:
		self.client = client
		self._agent_keys = dict(agent_keys)

	async def open(self, figure_id: str) -> str:
		self._agent_key(figure_id)
		return f"{figure_id}-{int(time.time() * 1000)}"

	async def submit(self, token: str, text: str, figure_id: str) -> AgentReply:
		figure = get_figure(figure_id)
		if figure is None:
			raise TransportError(f"Unknown figure {figure_id!r}")
		history = [
			{"role": "system", "content": persona_system_prompt(figure)},
			{"role": "user", "content": text},
		]
		try:
			data = await self.client.character_chat(self._agent_key(figure_id), history)
		except ElevenLabsError as exc:
			raise TransportError(f"Character chat failed: {exc}") from exc

		reply_text = extract_reply_text(data)
		audio: Optional[bytes] = None
		if reply_text:
			try:
				audio = await self.client.text_to_speech(figure.voice_id or EINSTEIN_VOICE_ID, reply_text)
			except ElevenLabsError as exc:
				logger.warning("Text-to-speech failed for %s: %s", figure_id, exc)
		return AgentReply(text=reply_text, audio=audio, mime_type="audio/mpeg", session_id=token)
