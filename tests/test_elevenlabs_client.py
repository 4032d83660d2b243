"""Tests for the ElevenLabs HTTP client using httpx.MockTransport."""

import json

import httpx
import pytest

from services.elevenlabs.client import ElevenLabsClient, ElevenLabsError


def _client(handler):
    http = httpx.AsyncClient(base_url="https://api.elevenlabs.test", transport=httpx.MockTransport(handler))
    return ElevenLabsClient("xi-secret", http_client=http), http


@pytest.mark.asyncio
async def test_start_conversation_sends_key_and_agent():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["key"] = request.headers.get("xi-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"conversation_id": "conv-1"})

    client, http = _client(handler)
    async with http:
        assert await client.start_conversation("agent-e") == "conv-1"

    assert seen == {
        "path": "/v1/conversation",
        "key": "xi-secret",
        "body": {"agent_key": "agent-e", "connect_only": True},
    }


@pytest.mark.asyncio
async def test_signed_url_queries_agent_id():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["agent_id"] == "agent-e"
        return httpx.Response(200, json={"signed_url": "wss://signed"})

    client, http = _client(handler)
    async with http:
        assert await client.get_signed_url("agent-e") == "wss://signed"


@pytest.mark.asyncio
async def test_missing_signed_url_is_an_error():
    client, http = _client(lambda request: httpx.Response(200, json={}))
    async with http:
        with pytest.raises(ElevenLabsError):
            await client.get_signed_url("agent-e")


@pytest.mark.asyncio
async def test_http_errors_carry_status_and_details():
    client, http = _client(lambda request: httpx.Response(404, json={"detail": "unknown conversation"}))
    async with http:
        with pytest.raises(ElevenLabsError) as excinfo:
            await client.send_message("conv-x", "hello")

    assert excinfo.value.status_code == 404
    assert excinfo.value.details == {"detail": "unknown conversation"}


@pytest.mark.asyncio
async def test_network_errors_are_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client, http = _client(handler)
    async with http:
        with pytest.raises(ElevenLabsError) as excinfo:
            await client.start_conversation("agent-e")
    assert excinfo.value.status_code is None


@pytest.mark.asyncio
async def test_text_to_speech_returns_audio_bytes():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/text-to-speech/voice-1"
        body = json.loads(request.content)
        assert body["model_id"] == "eleven_multilingual_v2"
        assert body["voice_settings"] == {"stability": 0.5, "similarity_boost": 0.75}
        return httpx.Response(200, content=b"ID3audio", headers={"Content-Type": "audio/mpeg"})

    client, http = _client(handler)
    async with http:
        assert await client.text_to_speech("voice-1", "Hello") == b"ID3audio"


def test_api_key_is_required():
    with pytest.raises(ValueError):
        ElevenLabsClient("")
