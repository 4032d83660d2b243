"""Persona conversation and speech built on OpenAI's Responses and audio APIs."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, List, Optional
from uuid import uuid4

from openai import AsyncOpenAI

from models.session_models import AgentReply
from services.catalog import get_figure
from services.transports.base import SessionClosedError, Transport, TransportError
from services.transports.prompts import persona_system_prompt
from services.transports.response_parser import extract_text

logger = logging.getLogger(__name__)

DEFAULT_CHAT_MODEL = "gpt-4o-mini"
DEFAULT_TTS_MODEL = "gpt-4o-mini-tts"


class OpenAIPersonaTransport(Transport):
	"""Keep a short history per session token and voice each reply with TTS."""

	name = "openai"

	def __init__(
		self,
		client: AsyncOpenAI,
		*,
		chat_model: str = DEFAULT_CHAT_MODEL,
		tts_model: str = DEFAULT_TTS_MODEL,
		voice: str = "onyx",
		max_history: int = 20,
		max_tokens: int = 300,
		max_sessions: int = 256,
	) -> None:
		if client is None:
			raise ValueError("AsyncOpenAI client is required.")
		self.client = client
		self.chat_model = chat_model
		self.tts_model = tts_model
		self.voice = voice
		self.max_history = max_history
		self.max_tokens = max_tokens
		self.max_sessions = max_sessions
		# Least recently used first, at most max_sessions entries.
		self._histories: OrderedDict[str, List[Dict[str, str]]] = OrderedDict()

	async def open(self, figure_id: str) -> str:
		if get_figure(figure_id) is None:
			raise TransportError(f"Unknown figure {figure_id!r}")
		token = uuid4().hex
		self._histories[token] = []
		while len(self._histories) > self.max_sessions:
			evicted, _ = self._histories.popitem(last=False)
			logger.info("Dropping idle persona session %s", evicted)
		return token

	async def submit(self, token: str, text: str, figure_id: str) -> AgentReply:
		history = self._histories.get(token)
		if history is None:
			raise SessionClosedError(f"Session {token} is not open")
		self._histories.move_to_end(token)
		figure = get_figure(figure_id)
		if figure is None:
			raise TransportError(f"Unknown figure {figure_id!r}")

		messages = [{"role": "system", "content": persona_system_prompt(figure)}, *history]
		messages.append({"role": "user", "content": text})
		try:
			response = await self.client.responses.create(
				model=self.chat_model,
				input=messages,
				max_output_tokens=self.max_tokens,
			)
		except Exception as exc:
			raise TransportError(f"OpenAI response failed: {exc}") from exc

		reply_text = extract_text(response).strip()
		history.append({"role": "user", "content": text})
		if reply_text:
			history.append({"role": "assistant", "content": reply_text})
		del history[: max(0, len(history) - self.max_history)]

		return AgentReply(text=reply_text, audio=await self._speak(reply_text), mime_type="audio/mpeg")

	async def close(self, token: str) -> None:
		self._histories.pop(token, None)

	async def aclose(self) -> None:
		self._histories.clear()

	async def _speak(self, text: str) -> Optional[bytes]:
		if not text:
			return None
		try:
			speech = await self.client.audio.speech.create(
				model=self.tts_model,
				voice=self.voice,
				input=text,
				response_format="mp3",
			)
		except Exception as exc:
			logger.error("OpenAI speech request failed: %s", exc)
			return None
		return speech.content
