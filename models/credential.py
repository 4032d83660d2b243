from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class SessionCredential:
    """Opaque short-lived token standing in for a figure's agent key.

    Times are Unix epoch milliseconds.
    """

    token: str
    figure_id: str
    issued_at: int
    expires_at: int

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at

    def to_response(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "figureId": self.figure_id,
            "timestamp": self.issued_at,
            "expiresAt": self.expires_at,
        }
