"""Tests for the concrete transports."""

from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from controllers.voice_controller import agent_audio
from services.elevenlabs.client import ElevenLabsError
from services.transports.base import SessionClosedError, TransportError
from services.transports.elevenlabs import ElevenLabsAgentAudioTransport, ElevenLabsConversationTransport
from services.transports.openai_persona import OpenAIPersonaTransport
from services.transports.scripted import ScriptedTransport, scripted_reply

AGENT_KEYS = {"einstein": "agent-e", "curie": "agent-c"}


class StubElevenLabs:
    def __init__(self):
        self.calls = []
        self.message_error = None
        self.audio_error = None
        self.chat_reply = {"response": "Imagination is more important than knowledge."}

    async def start_conversation(self, agent_key):
        self.calls.append(("start", agent_key))
        return "conv-1"

    async def send_message(self, conversation_id, message):
        self.calls.append(("message", conversation_id))
        if self.message_error:
            raise self.message_error
        return {"conversation_id": conversation_id, "response": "Hello from 1905."}

    async def get_conversation_audio(self, conversation_id):
        if self.audio_error:
            raise self.audio_error
        return b"ID3reply"

    async def character_chat(self, character_id, history):
        self.calls.append(("chat", character_id))
        return self.chat_reply

    async def text_to_speech(self, voice_id, text):
        self.calls.append(("tts", voice_id))
        return b"ID3speech"


@pytest.mark.asyncio
async def test_conversation_transport_round_trip():
    stub = StubElevenLabs()
    transport = ElevenLabsConversationTransport(stub, AGENT_KEYS)

    token = await transport.open("einstein")
    reply = await transport.submit(token, "hi", "einstein")

    assert token == "conv-1"
    assert stub.calls[0] == ("start", "agent-e")
    assert reply.text == "Hello from 1905."
    assert reply.audio == b"ID3reply"
    assert reply.session_id == "conv-1"


@pytest.mark.asyncio
async def test_conversation_transport_needs_agent_key():
    transport = ElevenLabsConversationTransport(StubElevenLabs(), AGENT_KEYS)
    with pytest.raises(TransportError):
        await transport.open("lincoln")


@pytest.mark.asyncio
async def test_conversation_transport_maps_missing_conversation():
    stub = StubElevenLabs()
    stub.message_error = ElevenLabsError("gone", status_code=404)
    transport = ElevenLabsConversationTransport(stub, AGENT_KEYS)
    with pytest.raises(SessionClosedError):
        await transport.submit("conv-1", "hi", "einstein")

    stub.message_error = ElevenLabsError("boom", status_code=500)
    with pytest.raises(TransportError):
        await transport.submit("conv-1", "hi", "einstein")


@pytest.mark.asyncio
async def test_conversation_transport_tolerates_missing_audio():
    stub = StubElevenLabs()
    stub.audio_error = ElevenLabsError("no audio", status_code=404)
    transport = ElevenLabsConversationTransport(stub, AGENT_KEYS)
    reply = await transport.submit("conv-1", "hi", "einstein")
    assert reply.text == "Hello from 1905."
    assert reply.audio is None


@pytest.mark.asyncio
async def test_agent_audio_transport_voices_reply():
    stub = StubElevenLabs()
    transport = ElevenLabsAgentAudioTransport(stub, AGENT_KEYS)

    token = await transport.open("einstein")
    reply = await transport.submit(token, "imagination?", "einstein")

    assert token.startswith("einstein-")
    assert ("chat", "agent-e") in stub.calls
    assert ("tts", "ZQe5CZNOzWyzPSCn5a3c") in stub.calls
    assert reply.audio == b"ID3speech"


@pytest.mark.asyncio
async def test_agent_audio_transport_skips_speech_for_empty_reply():
    stub = StubElevenLabs()
    stub.chat_reply = {}
    transport = ElevenLabsAgentAudioTransport(stub, AGENT_KEYS)
    reply = await transport.submit("einstein-1", "hm", "einstein")
    assert reply.text == ""
    assert reply.audio is None
    assert not any(kind == "tts" for kind, _ in stub.calls)


def _openai_stub(text="I am Marie Curie."):
    calls = {"responses": [], "speech": []}

    async def create_response(**kwargs):
        calls["responses"].append(kwargs)
        return SimpleNamespace(output=[], output_text=text)

    async def create_speech(**kwargs):
        calls["speech"].append(kwargs)
        return SimpleNamespace(content=b"ID3curie")

    client = SimpleNamespace(
        responses=SimpleNamespace(create=create_response),
        audio=SimpleNamespace(speech=SimpleNamespace(create=create_speech)),
    )
    return client, calls


@pytest.mark.asyncio
async def test_openai_transport_keeps_history_per_token():
    client, calls = _openai_stub()
    transport = OpenAIPersonaTransport(client, max_history=2)

    token = await transport.open("curie")
    first = await transport.submit(token, "Who are you?", "curie")
    await transport.submit(token, "What did you discover?", "curie")

    assert first.text == "I am Marie Curie."
    assert first.audio == b"ID3curie"
    second_input = calls["responses"][1]["input"]
    assert second_input[0]["role"] == "system"
    assert "Marie Curie" in second_input[0]["content"]
    assert [m["content"] for m in second_input[1:]] == ["Who are you?", "I am Marie Curie.", "What did you discover?"]


@pytest.mark.asyncio
async def test_openai_transport_close_forgets_session():
    client, _ = _openai_stub()
    transport = OpenAIPersonaTransport(client)
    token = await transport.open("einstein")
    await transport.close(token)
    with pytest.raises(SessionClosedError):
        await transport.submit(token, "hello?", "einstein")


@pytest.mark.asyncio
async def test_openai_transport_wraps_provider_errors():
    async def failing(**kwargs):
        raise RuntimeError("rate limited")

    client, _ = _openai_stub()
    client.responses.create = failing
    transport = OpenAIPersonaTransport(client)
    token = await transport.open("einstein")
    with pytest.raises(TransportError):
        await transport.submit(token, "hello?", "einstein")


@pytest.mark.asyncio
async def test_scripted_transport_matches_keywords():
    transport = ScriptedTransport()
    token = await transport.open("einstein")
    reply = await transport.submit(token, "Tell me about RELATIVITY", "einstein")
    assert "E=mc²" in reply.text
    assert reply.audio is None


def test_scripted_reply_defaults():
    assert scripted_reply("something unrelated").startswith("The important thing is not to stop questioning")
    assert "mind" in scripted_reply("hello", "aurelius")


@pytest.mark.asyncio
async def test_scripted_transport_rejects_unknown_figure():
    with pytest.raises(TransportError):
        await ScriptedTransport().open("napoleon")


def _request_for(transport):
    return SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(transport=transport)))


@pytest.mark.asyncio
async def test_one_shot_exchanges_keep_persona_sessions_bounded():
    client, _ = _openai_stub()
    transport = OpenAIPersonaTransport(client, max_sessions=8)
    request = _request_for(transport)

    for _ in range(50):
        body = await agent_audio(request, "hi", "einstein", None)
        assert body["response"] == "I am Marie Curie."

    assert len(transport._histories) == 8


@pytest.mark.asyncio
async def test_recently_used_persona_session_survives_eviction():
    client, _ = _openai_stub()
    transport = OpenAIPersonaTransport(client, max_sessions=2)
    keep = await transport.open("curie")
    await transport.open("curie")
    await transport.submit(keep, "still here?", "curie")
    await transport.open("curie")

    reply = await transport.submit(keep, "and now?", "curie")
    assert reply.text == "I am Marie Curie."


@pytest.mark.asyncio
async def test_failed_one_shot_exchange_closes_its_session():
    async def failing(**kwargs):
        raise RuntimeError("rate limited")

    client, _ = _openai_stub()
    client.responses.create = failing
    transport = OpenAIPersonaTransport(client)

    with pytest.raises(HTTPException) as excinfo:
        await agent_audio(_request_for(transport), "hi", "einstein", None)

    assert excinfo.value.status_code == 500
    assert len(transport._histories) == 0
