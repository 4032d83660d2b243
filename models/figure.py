from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Figure:
    """Static catalog entry for a selectable historical persona.

    Attributes:
        id: Unique string key (e.g. ``einstein``).
        display_name: Name shown by the client.
        portrait_ref: URL of the portrait image.
        intro_video_ref: Optional URL of an introduction video.
        is_default: Whether the figure is selected when a client first connects.
        voice_id: Optional provider voice used for text-to-speech replies.

    The agent credential is deliberately not stored here; it is resolved from
    server configuration by figure id.
    """

    id: str
    display_name: str
    portrait_ref: str
    intro_video_ref: Optional[str] = None
    is_default: bool = False
    voice_id: Optional[str] = None

    def public_view(self) -> Dict[str, Any]:
        """Return the fields that are safe to send to the browser."""
        return {
            "id": self.id,
            "name": self.display_name,
            "imageSrc": self.portrait_ref,
            "videoSrc": self.intro_video_ref,
            "isActive": self.is_default,
        }
