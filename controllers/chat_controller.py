"""Chat turn controller bridging HTTP requests to the session engine."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from services.session.engine import SessionEngine


async def handle_chat(request: Request, session_id: str, message: str) -> Dict[str, Any]:
	"""Run one turn for `session_id` and return the reply payload.

	Store failures propagate so the route can report a failed turn.
	"""
	engine: SessionEngine = request.app.state.session_engine
	reply = await engine.handle_turn(session_id, message)
	return {"response": reply}
