"""Choose the transport named by configuration."""

from __future__ import annotations

from typing import Dict, Optional

from openai import AsyncOpenAI

from services.elevenlabs.client import ElevenLabsClient
from services.transports.base import Transport
from services.transports.elevenlabs import ElevenLabsAgentAudioTransport, ElevenLabsConversationTransport
from services.transports.openai_persona import OpenAIPersonaTransport
from services.transports.scripted import ScriptedTransport
from utils.settings import (
	ConfigurationError,
	Settings,
	TRANSPORT_ELEVENLABS_AGENT_AUDIO,
	TRANSPORT_ELEVENLABS_CONVERSATION,
	TRANSPORT_OPENAI,
)


def build_transport(
	settings: Settings,
	*,
	agent_keys: Dict[str, str],
	elevenlabs_client: Optional[ElevenLabsClient] = None,
	openai_client: Optional[AsyncOpenAI] = None,
) -> Transport:
	"""Return the transport for ``settings.resolved_transport()``.

	Raises:
		ConfigurationError: If the chosen transport's client is unavailable.
	"""
	name = settings.resolved_transport()
	if name in (TRANSPORT_ELEVENLABS_CONVERSATION, TRANSPORT_ELEVENLABS_AGENT_AUDIO):
		if elevenlabs_client is None:
			raise ConfigurationError(f"VOICE_TRANSPORT={name} requires ELEVENLABS_API_KEY")
		if name == TRANSPORT_ELEVENLABS_CONVERSATION:
			return ElevenLabsConversationTransport(elevenlabs_client, agent_keys)
		return ElevenLabsAgentAudioTransport(elevenlabs_client, agent_keys)
	if name == TRANSPORT_OPENAI:
		if openai_client is None:
			raise ConfigurationError("VOICE_TRANSPORT=openai requires OPENAI_API_KEY")
		return OpenAIPersonaTransport(
			openai_client,
			chat_model=settings.openai_chat_model,
			tts_model=settings.openai_tts_model,
		)
	return ScriptedTransport()
