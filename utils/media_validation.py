"""Validation helpers for agent audio payloads."""

import base64
import binascii
from typing import Optional, Union

ALLOWED_AUDIO_TYPES = {
    "audio/wav",
    "audio/x-wav",
    "audio/webm",
    "audio/mpeg",
    "audio/mp3",
    "audio/mp4",
    "audio/aac",
    "audio/ogg",
    "audio/opus",
    "audio/flac",
}

DEFAULT_AUDIO_TYPE = "audio/mpeg"


def decode_audio_payload(payload: Union[bytes, bytearray, str]) -> bytes:
    """Return raw audio bytes from either raw bytes or base64 text.

    Raises:
        ValueError: If the payload is empty or is text that is not valid base64.
    """
    if isinstance(payload, (bytes, bytearray)):
        data = bytes(payload)
    elif isinstance(payload, str):
        try:
            data = base64.b64decode(payload.strip(), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("Audio payload is not valid base64.") from exc
    else:
        raise ValueError(f"Unsupported audio payload type: {type(payload).__name__}")
    if not data:
        raise ValueError("Audio payload is empty.")
    return data


def sniff_audio_type(data: bytes) -> str:
    """Guess the MIME type from the container signature, defaulting to MPEG."""
    if data.startswith(b"ID3") or data[:2] in (b"\xff\xfb", b"\xff\xf3", b"\xff\xf2"):
        return "audio/mpeg"
    if data.startswith(b"RIFF") and data[8:12] == b"WAVE":
        return "audio/wav"
    if data.startswith(b"OggS"):
        return "audio/ogg"
    if data.startswith(b"\x1a\x45\xdf\xa3"):
        return "audio/webm"
    if data.startswith(b"fLaC"):
        return "audio/flac"
    if data[4:8] == b"ftyp":
        return "audio/mp4"
    return DEFAULT_AUDIO_TYPE


def normalize_audio_type(mime_type: Optional[str], data: bytes) -> str:
    """Return a supported MIME type for ``data``, sniffing when the hint is missing.

    Raises:
        ValueError: If an explicit hint names an unsupported audio type.
    """
    if not mime_type:
        return sniff_audio_type(data)
    mime = mime_type.lower().split(";", 1)[0].strip()
    if mime not in ALLOWED_AUDIO_TYPES:
        raise ValueError(f"Unsupported audio content type: {mime_type}")
    return mime
