"""Helpers to extract reply text from provider payloads."""

from __future__ import annotations

from typing import Any, Dict


def extract_text(response: Any) -> str:
	"""Extract the first output_text entry from an OpenAI Responses result."""
	for item in getattr(response, "output", None) or []:
		if getattr(item, "type", None) != "message":
			continue
		for content in getattr(item, "content", None) or []:
			content_type = content.get("type") if isinstance(content, dict) else getattr(content, "type", None)
			if content_type == "output_text":
				text = content.get("text") if isinstance(content, dict) else getattr(content, "text", "")
				return text or ""
	return getattr(response, "output_text", "") or ""


def extract_reply_text(data: Dict[str, Any]) -> str:
	"""Return the reply text from an ElevenLabs chat/conversation payload, or ''."""
	for key in ("response", "text", "content"):
		value = data.get(key)
		if isinstance(value, str) and value.strip():
			return value
	return ""
