"""FastAPI proxy routes to the voice provider."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from controllers.voice_controller import (
	agent_audio,
	conversation_audio,
	conversation_response,
	legacy_conversation,
	start_conversation,
)
from utils.request_guards import require_same_origin

router = APIRouter(prefix="/api")
guarded = [Depends(require_same_origin)]


class StartConversationPayload(BaseModel):
	figureId: Optional[str] = None
	token: Optional[str] = None


class ConversationResponsePayload(BaseModel):
	message: str = ""
	conversationId: str = ""


class AgentAudioPayload(BaseModel):
	message: str = ""
	figureId: Optional[str] = None
	conversationId: Optional[str] = None


class LegacyConversationPayload(BaseModel):
	message: str = ""
	agentKey: str = ""


@router.post("/elevenlabs/start-conversation", dependencies=guarded)
async def start_conversation_route(request: Request, payload: StartConversationPayload):
	try:
		return await start_conversation(request, payload.figureId, payload.token)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/elevenlabs/conversation-response", dependencies=guarded)
async def conversation_response_route(request: Request, payload: ConversationResponsePayload):
	try:
		return await conversation_response(request, payload.message, payload.conversationId)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/elevenlabs/audio/{conversation_id}", dependencies=guarded)
async def conversation_audio_route(request: Request, conversation_id: str):
	"""Return the audio/mpeg bytes of the latest reply."""
	try:
		return await conversation_audio(request, conversation_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/agent-audio", dependencies=guarded)
async def agent_audio_route(request: Request, payload: AgentAudioPayload):
	"""Submit one utterance and return the reply text with base64 audio."""
	try:
		return await agent_audio(request, payload.message, payload.figureId, payload.conversationId)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/conversation")
async def legacy_conversation_route(payload: LegacyConversationPayload):
	try:
		return legacy_conversation(payload.message, payload.agentKey)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
