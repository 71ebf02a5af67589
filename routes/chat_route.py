"""FastAPI routes for chat turns."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StrictStr

from controllers.chat_controller import handle_chat

LOGGER = logging.getLogger(__name__)

FAILURE_BODY = {"error": "Failed to process request"}

router = APIRouter(prefix="/api")


class ChatPayload(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	message: StrictStr
	session_id: StrictStr = Field(alias="sessionId")


class SessionMessagePayload(BaseModel):
	message: StrictStr


def _failure() -> JSONResponse:
	return JSONResponse(status_code=500, content=FAILURE_BODY)


@router.post("/chat")
async def chat_route(request: Request):
	"""Forward `{message, sessionId}` to the session's engine turn."""
	try:
		payload = ChatPayload.model_validate(await request.json())
		return await handle_chat(request, payload.session_id, payload.message)
	except Exception:
		LOGGER.exception("Chat request failed")
		return _failure()


@router.post("/sessions/{session_id}/chat")
async def session_chat_route(request: Request, session_id: str):
	"""Run a turn for the session addressed in the path."""
	try:
		payload = SessionMessagePayload.model_validate(await request.json())
		return await handle_chat(request, session_id, payload.message)
	except Exception:
		LOGGER.exception("Session %s chat request failed", session_id)
		return _failure()
