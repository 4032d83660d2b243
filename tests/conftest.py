"""Shared fixtures for the conversation service test suite."""

import asyncio
from pathlib import Path
from typing import List, Optional, Tuple

import pytest
import pytest_asyncio

from dal.transcript_dal import TranscriptDAL
from models.session_models import AgentReply
from services.conversation.audio_player import AudioClip, AudioSink
from services.conversation.store import ConversationStore
from services.transports.base import Transport
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import Settings


class FakeTransport(Transport):
    """Transport double that records calls and can be paused or made to fail."""

    name = "fake"

    def __init__(self, requires_microphone: bool = False) -> None:
        self.requires_microphone = requires_microphone
        self.events: List[Tuple[str, str]] = []
        self.reply: AgentReply = AgentReply(text="E=mc²...")
        self.open_error: Optional[Exception] = None
        self.submit_error: Optional[Exception] = None
        self.close_error: Optional[Exception] = None
        self.open_gate: Optional[asyncio.Event] = None
        self.submit_gate: Optional[asyncio.Event] = None
        self.close_delay = 0.0
        self._counter = 0

    async def open(self, figure_id: str) -> str:
        self.events.append(("open", figure_id))
        if self.open_gate is not None:
            await self.open_gate.wait()
        if self.open_error is not None:
            raise self.open_error
        self._counter += 1
        return f"tok-{figure_id}-{self._counter}"

    async def submit(self, token: str, text: str, figure_id: str) -> AgentReply:
        self.events.append(("submit", token))
        if self.submit_gate is not None:
            await self.submit_gate.wait()
        if self.submit_error is not None:
            raise self.submit_error
        return self.reply

    async def close(self, token: str) -> None:
        self.events.append(("close", token))
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        if self.close_error is not None:
            raise self.close_error


class FakeSink(AudioSink):
    """Audio sink that 'plays' until released through ``finish``."""

    def __init__(self) -> None:
        self.played: List[AudioClip] = []
        self.stopped: List[str] = []
        self.gates = {}
        self.hold = True
        self.error: Optional[Exception] = None

    async def play(self, clip: AudioClip) -> None:
        self.played.append(clip)
        if self.error is not None:
            raise self.error
        if self.hold:
            gate = self.gates.setdefault(clip.clip_id, asyncio.Event())
            await gate.wait()

    async def stop(self, clip: AudioClip) -> None:
        self.stopped.append(clip.clip_id)

    def finish(self, clip: AudioClip) -> None:
        self.gates.setdefault(clip.clip_id, asyncio.Event()).set()


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def db_initializer(tmp_path: Path) -> AsyncDatabaseInitializer:
    return AsyncDatabaseInitializer(tmp_path / "db")


@pytest.fixture
def transcript_dal(db_initializer: AsyncDatabaseInitializer) -> TranscriptDAL:
    return TranscriptDAL(db_initializer)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def store(transcript_dal: TranscriptDAL, clock: FakeClock) -> ConversationStore:
    conversation_store = ConversationStore(transcript_dal, "tester", clock=clock)
    await conversation_store.load()
    return conversation_store


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def make_transport():
    """Factory for transports with non-default flags."""
    return FakeTransport


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        app_env="development",
        elevenlabs_api_key=None,
        openai_api_key=None,
        voice_transport="scripted",
        database_dir=str(tmp_path / "db"),
        rate_limit_requests=60,
        rate_limit_window_seconds=60.0,
        session_close_timeout_seconds=0.5,
    )
