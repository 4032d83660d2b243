"""Issue and redeem short-lived tokens that stand in for agent keys."""

from __future__ import annotations

import secrets
import time
from typing import Callable, Dict, Mapping, Optional

from models.credential import SessionCredential


class CredentialIssuer:
    """In-memory registry of opaque session credentials.

    The browser only ever sees the token; redeeming it on the server yields
    the figure id, from which the agent key is looked up.
    """

    def __init__(
        self,
        agent_keys: Mapping[str, str],
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._agent_keys = dict(agent_keys)
        self._ttl_ms = int(ttl_seconds * 1000)
        self._clock = clock
        self._issued: Dict[str, SessionCredential] = {}

    def has_credential(self, figure_id: str) -> bool:
        return figure_id in self._agent_keys

    def agent_key(self, figure_id: str) -> Optional[str]:
        return self._agent_keys.get(figure_id)

    def issue(self, figure_id: str) -> SessionCredential:
        """Return a new credential for ``figure_id``.

        Raises:
            KeyError: If the figure has no configured agent key.
        """
        if figure_id not in self._agent_keys:
            raise KeyError(f"Agent key not found for figure {figure_id}")
        self._prune()
        now = self._now_ms()
        credential = SessionCredential(
            token=secrets.token_urlsafe(24),
            figure_id=figure_id,
            issued_at=now,
            expires_at=now + self._ttl_ms,
        )
        self._issued[credential.token] = credential
        return credential

    def redeem(self, token: str) -> str:
        """Return the figure id bound to ``token``.

        Raises:
            KeyError: If the token is unknown or expired.
        """
        credential = self._issued.get(token)
        if credential is None or credential.is_expired(self._now_ms()):
            self._issued.pop(token, None)
            raise KeyError("Session token is invalid or expired")
        return credential.figure_id

    def _prune(self) -> None:
        now = self._now_ms()
        for token in [t for t, c in self._issued.items() if c.is_expired(now)]:
            del self._issued[token]

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)
