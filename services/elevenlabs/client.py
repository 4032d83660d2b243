"""Async HTTP client for the ElevenLabs conversational and speech APIs."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

DEFAULT_BASE_URL = "https://api.elevenlabs.io"
TTS_MODEL = "eleven_multilingual_v2"
DEFAULT_VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.75}

logger = logging.getLogger(__name__)


class ElevenLabsError(RuntimeError):
    """Raised when an ElevenLabs request fails or returns an unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class ElevenLabsClient:
    """Thin wrapper over ``httpx.AsyncClient`` that injects the API key.

    The client owns its ``httpx.AsyncClient`` unless one is supplied, in which
    case the caller is responsible for closing it.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not api_key:
            raise ValueError("ElevenLabs API key is required.")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = {"xi-api-key": api_key}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def get_signed_url(self, agent_id: str) -> str:
        """Return a signed websocket URL for a duplex SDK session with ``agent_id``."""
        data = await self._json(
            "GET", "/v1/convai/conversation/get_signed_url", params={"agent_id": agent_id}
        )
        signed_url = data.get("signed_url")
        if not signed_url:
            raise ElevenLabsError("Failed to get signed URL from ElevenLabs API", details=data)
        return signed_url

    async def start_conversation(self, agent_key: str) -> str:
        """Start a REST conversation with an agent and return its conversation id."""
        data = await self._json(
            "POST", "/v1/conversation", json={"agent_key": agent_key, "connect_only": True}
        )
        conversation_id = data.get("conversation_id")
        if not conversation_id:
            raise ElevenLabsError("Conversation start response had no conversation_id", details=data)
        return conversation_id

    async def send_message(self, conversation_id: str, message: str) -> Dict[str, Any]:
        """Post a user message into a conversation; returns the raw reply payload."""
        return await self._json("POST", f"/v1/conversation/{conversation_id}", json={"message": message})

    async def get_conversation_audio(self, conversation_id: str) -> bytes:
        """Return the MPEG audio for the latest reply in a conversation."""
        response = await self._request(
            "GET", f"/v1/conversation/{conversation_id}/audio", headers={"Accept": "audio/mpeg"}
        )
        return response.content

    async def character_chat(self, character_id: str, history: List[Dict[str, str]]) -> Dict[str, Any]:
        """Ask a character agent for a reply given a role/content history."""
        return await self._json(
            "POST",
            "/v1/chat",
            json={"character_id": character_id, "history": history, "model_id": TTS_MODEL},
        )

    async def text_to_speech(self, voice_id: str, text: str) -> bytes:
        """Synthesize ``text`` with ``voice_id`` and return MPEG bytes."""
        response = await self._request(
            "POST",
            f"/v1/text-to-speech/{voice_id}",
            json={"text": text, "model_id": TTS_MODEL, "voice_settings": DEFAULT_VOICE_SETTINGS},
        )
        return response.content

    async def _json(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        response = await self._request(method, path, **kwargs)
        try:
            data = response.json()
        except ValueError as exc:
            raise ElevenLabsError(f"ElevenLabs returned non-JSON for {path}", response.status_code) from exc
        if not isinstance(data, dict):
            raise ElevenLabsError(f"ElevenLabs returned an unexpected payload for {path}", response.status_code, data)
        return data

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            response = await self._http.request(method, path, headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            details = _error_details(exc.response)
            logger.error("ElevenLabs %s %s failed with %s: %s", method, path, exc.response.status_code, details)
            raise ElevenLabsError(
                f"ElevenLabs request failed with status {exc.response.status_code}",
                exc.response.status_code,
                details,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("ElevenLabs %s %s failed: %s", method, path, exc)
            raise ElevenLabsError(f"ElevenLabs request failed: {exc}") from exc
        return response


def _error_details(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
