"""Offline in-persona replies used when no voice provider is configured."""

from __future__ import annotations

import asyncio
import time
from typing import Sequence, Tuple

from models.session_models import AgentReply
from services.catalog import get_figure
from services.transports.base import Transport, TransportError

_EINSTEIN_TOPICS: Sequence[Tuple[Tuple[str, ...], str]] = (
	(
		("relativity", "space", "time"),
		"Time and space are not conditions in which we live, but modes by which we think. "
		"Put simply, E=mc², which means energy equals mass times the speed of light squared.",
	),
	(
		("quantum", "mechanics", "uncertainty"),
		"Quantum mechanics is certainly imposing. But an inner voice tells me that it is not yet "
		"the real thing. The theory says a lot, but does not really bring us any closer to the "
		"secret of the 'old one'.",
	),
	(
		("god", "religion", "believe"),
		"I believe in Spinoza's God who reveals himself in the orderly harmony of what exists, not "
		"in a God who concerns himself with the fates and actions of human beings.",
	),
	(
		("imagination", "creativity", "knowledge"),
		"Imagination is more important than knowledge. For knowledge is limited, whereas "
		"imagination embraces the entire world, stimulating progress, giving birth to evolution.",
	),
	(
		("peace", "war", "atom", "nuclear"),
		"Peace cannot be kept by force; it can only be achieved by understanding. The release of "
		"atom power has changed everything except our way of thinking.",
	),
	(
		("education", "school", "learn", "teaching"),
		"Education is what remains after one has forgotten what one has learned in school. The "
		"only thing that interferes with my learning is my education.",
	),
	(
		("success", "fail", "mistake"),
		"A person who never made a mistake never tried anything new. Success is failure in progress.",
	),
	(
		("hello", "name"),
		"Hello! My name is Albert Einstein. How wonderful to meet you. What would you like to discuss today?",
	),
)

_EINSTEIN_DEFAULT = (
	"The important thing is not to stop questioning. Curiosity has its own reason for existing. "
	"One cannot help but be in awe when contemplating the mysteries of eternity, of life, of the "
	"marvelous structure of reality."
)

_FIGURE_DEFAULTS = {
	"aurelius": "You have power over your mind, not outside events. Realize this, and you will find strength. Ask me what troubles you.",
	"curie": "Nothing in life is to be feared, it is only to be understood. Now is the time to understand more. What shall we examine?",
	"lincoln": "Whatever you are, be a good one. I am glad to listen; what would you put to me?",
}


def scripted_reply(message: str, figure_id: str = "einstein") -> str:
	"""Return a canned in-character answer matched on keywords in ``message``."""
	if figure_id != "einstein":
		return _FIGURE_DEFAULTS.get(figure_id, _EINSTEIN_DEFAULT)
	lower = message.lower()
	for keywords, reply in _EINSTEIN_TOPICS:
		if any(keyword in lower for keyword in keywords):
			return reply
	return _EINSTEIN_DEFAULT


class ScriptedTransport(Transport):
	"""Answer from a fixed keyword table after a short simulated delay."""

	name = "scripted"

	def __init__(self, delay_seconds: float = 0.0) -> None:
		self.delay_seconds = delay_seconds

	async def open(self, figure_id: str) -> str:
		if get_figure(figure_id) is None:
			raise TransportError(f"Unknown figure {figure_id!r}")
		return f"scripted-{figure_id}-{int(time.time() * 1000)}"

	async def submit(self, token: str, text: str, figure_id: str) -> AgentReply:
		if self.delay_seconds:
			await asyncio.sleep(self.delay_seconds)
		return AgentReply(text=scripted_reply(text, figure_id), session_id=token)
