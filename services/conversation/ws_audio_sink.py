"""Audio sink that hands clips to the browser over the conversation websocket."""
from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any, Awaitable, Callable, Dict

from services.conversation.audio_player import AudioClip, AudioSink

logger = logging.getLogger(__name__)

SendFn = Callable[[Dict[str, Any]], Awaitable[None]]


class WebSocketAudioSink(AudioSink):
	"""Send ``audio.play``/``audio.stop`` events; the client reports ``audio.ended``."""

	def __init__(self, send: SendFn, playback_timeout: float = 120.0) -> None:
		self._send = send
		self.playback_timeout = playback_timeout
		self._pending: Dict[str, asyncio.Event] = {}

	async def play(self, clip: AudioClip) -> None:
		finished = asyncio.Event()
		self._pending[clip.clip_id] = finished
		try:
			await self._send(
				{
					"type": "audio.play",
					"clip_id": clip.clip_id,
					"mime_type": clip.mime_type,
					"audio_b64": base64.b64encode(clip.data).decode("ascii"),
				}
			)
			try:
				await asyncio.wait_for(finished.wait(), timeout=self.playback_timeout)
			except asyncio.TimeoutError:
				logger.info("No playback report for clip %s; assuming it finished", clip.clip_id)
		finally:
			self._pending.pop(clip.clip_id, None)

	async def stop(self, clip: AudioClip) -> None:
		await self._send({"type": "audio.stop", "clip_id": clip.clip_id})

	def mark_finished(self, clip_id: str) -> bool:
		"""Record the client's report that ``clip_id`` ended. Returns False for unknown clips."""
		finished = self._pending.get(clip_id)
		if finished is None:
			return False
		finished.set()
		return True
