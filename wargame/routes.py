"""FastAPI endpoints under /api.

A chat relay posts every slash command it receives to
/api/sessions/{session_id}/commands and sends the returned replies back to
the chat. The read-only endpoints expose session state for dashboards and
debugging.
"""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from wargame.checkpoints import NotFoundError
from wargame.commands import CommandHandler
from wargame.sessions import SessionStore

router = APIRouter()


class CommandBody(BaseModel):
    user_id: int
    username: str = ""
    text: str


def _handler(request: Request) -> CommandHandler:
    return request.app.state.commands


def _sessions(request: Request) -> SessionStore:
    return request.app.state.sessions


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.post("/sessions/{session_id}/commands")
async def run_command(session_id: str, body: CommandBody, request: Request):
    """Run one chat command and return the replies to send."""
    replies = await _handler(request).handle(
        session_id, body.user_id, body.username, body.text
    )
    return {"replies": replies}


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, request: Request):
    """Scenario state, pending queue and checkpoint keys of a session."""
    sessions = _sessions(request)
    if session_id not in sessions:
        raise HTTPException(404, "Session not found")
    session = sessions.get(session_id)
    return {
        "is_active": session.state.is_active,
        "messages": [m.model_dump() for m in session.state.messages],
        "queue": [i.model_dump(mode="json") for i in session.queue],
        "players": [p.model_dump() for p in session.roles.values()],
        "checkpoints": session.checkpoints.keys(),
        "busy": session.busy,
    }


@router.get("/sessions/{session_id}/checkpoints/{key}")
async def get_checkpoint(session_id: str, key: str, request: Request):
    """A stored checkpoint, without restoring it."""
    sessions = _sessions(request)
    if session_id not in sessions:
        raise HTTPException(404, "Session not found")
    try:
        state = sessions.get(session_id).checkpoints.restore(key)
    except NotFoundError:
        raise HTTPException(404, "Checkpoint not found")
    return state.model_dump(mode="json")
