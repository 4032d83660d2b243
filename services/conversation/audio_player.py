"""Single-slot playback of agent audio replies."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Union
from uuid import uuid4

from utils.media_validation import decode_audio_payload, normalize_audio_type

logger = logging.getLogger(__name__)


class AudioClip:
	"""Decoded audio buffer owned by the player until released."""

	def __init__(self, data: bytes, mime_type: str) -> None:
		self.clip_id = uuid4().hex
		self.mime_type = mime_type
		self._data: Optional[bytes] = data

	@property
	def data(self) -> bytes:
		if self._data is None:
			raise RuntimeError(f"Audio clip {self.clip_id} was already released.")
		return self._data

	@property
	def released(self) -> bool:
		return self._data is None

	def release(self) -> None:
		self._data = None


class AudioSink(ABC):
	"""Output device for decoded clips."""

	@abstractmethod
	async def play(self, clip: AudioClip) -> None:
		"""Play ``clip`` and return once playback finished naturally."""

	@abstractmethod
	async def stop(self, clip: AudioClip) -> None:
		"""Interrupt playback of ``clip``."""


class AudioPlayer:
	"""Play at most one clip at a time; every new clip preempts the current one."""

	def __init__(self, sink: AudioSink) -> None:
		self.sink = sink
		self._current: Optional[AudioClip] = None
		self._task: Optional[asyncio.Task] = None

	@property
	def current(self) -> Optional[AudioClip]:
		return self._current

	@property
	def is_playing(self) -> bool:
		return self._task is not None and not self._task.done()

	async def play(self, payload: Union[bytes, str], mime_type: Optional[str] = None) -> AudioClip:
		"""Stop the current clip, decode ``payload``, and start playing it.

		Raises:
			ValueError: If the payload cannot be decoded. The previous clip is
				stopped regardless.
		"""
		await self.stop()
		data = decode_audio_payload(payload)
		clip = AudioClip(data, normalize_audio_type(mime_type, data))
		self._current = clip
		self._task = asyncio.create_task(self._run(clip))
		return clip

	async def stop(self) -> None:
		"""Interrupt and release the current clip, if any."""
		clip, task = self._current, self._task
		self._current, self._task = None, None
		if clip is None:
			return
		if task is not None and not task.done():
			task.cancel()
			try:
				await task
			except asyncio.CancelledError:
				pass
			try:
				await self.sink.stop(clip)
			except Exception as exc:
				logger.warning("Failed to stop audio clip %s: %s", clip.clip_id, exc)
		clip.release()

	async def _run(self, clip: AudioClip) -> None:
		try:
			await self.sink.play(clip)
		except asyncio.CancelledError:
			raise
		except Exception as exc:
			logger.error("Audio playback failed for clip %s: %s", clip.clip_id, exc)
		finally:
			clip.release()
			if self._current is clip:
				self._current = None
