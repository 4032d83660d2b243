"""Pluggable transports that carry utterances to and replies from a figure's agent."""

from __future__ import annotations

from abc import ABC, abstractmethod

from models.session_models import AgentReply


class TransportError(RuntimeError):
	"""A collaborator call failed (network, provider, or missing credential)."""


class PermissionDeniedError(TransportError):
	"""Microphone capture was refused, so a voice session cannot start."""


class SessionClosedError(TransportError):
	"""The provider no longer recognises the session token."""


class Transport(ABC):
	"""Open, feed, and close one session with an external agent.

	Implementations never hold more than the provider state needed for the
	tokens they issued; the Session Controller owns the lifecycle.
	"""

	name = "transport"
	requires_microphone = False

	@abstractmethod
	async def open(self, figure_id: str) -> str:
		"""Start a session for ``figure_id`` and return its token."""

	@abstractmethod
	async def submit(self, token: str, text: str, figure_id: str) -> AgentReply:
		"""Forward one utterance and return the agent's reply."""

	async def close(self, token: str) -> None:
		"""Release provider resources for ``token``."""
		return None

	async def aclose(self) -> None:
		"""Release resources shared by every session (HTTP clients and the like)."""
		return None
