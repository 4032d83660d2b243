"""Conversation domain models for figure voice sessions."""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


class Sender(str, enum.Enum):
	"""Author of a transcript message."""

	USER = "user"
	FIGURE = "historical-figure"


class SessionState(str, enum.Enum):
	"""Lifecycle of one external voice/text session."""

	IDLE = "idle"
	CONNECTING = "connecting"
	OPEN = "open"
	CLOSING = "closing"
	ERROR = "error"


@dataclass(frozen=True)
class Message:
	"""Single transcript entry; never mutated after creation."""

	id: str
	sender: Sender
	text: str
	timestamp: int
	figure_id: str

	def to_dict(self) -> Dict[str, Any]:
		data = asdict(self)
		data["sender"] = self.sender.value
		return data

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "Message":
		"""Build a message from its persisted form, raising on bad fields."""
		text = data["text"]
		timestamp = data["timestamp"]
		if not isinstance(text, str) or isinstance(timestamp, bool) or not isinstance(timestamp, int):
			raise ValueError("Message text must be a string and timestamp an integer.")
		return cls(
			id=str(data["id"]),
			sender=Sender(data["sender"]),
			text=text,
			timestamp=timestamp,
			figure_id=str(data["figure_id"]),
		)


@dataclass
class AgentReply:
	"""Reply returned by a transport for one submitted utterance."""

	text: str
	audio: Optional[bytes] = None
	mime_type: Optional[str] = None
	session_id: Optional[str] = None
