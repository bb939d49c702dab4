"""Voice session endpoints - admission, start, end and history."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.auth import get_current_context
from backend.app.api.deps import get_session_tracker
from backend.app.db.context import RequestContext
from backend.app.db.engine import get_session
from backend.app.errors import AuthorizationError
from backend.app.models.sessions import SessionStart, VoiceSessionView
from backend.app.sessions.tracker import SessionTracker

router = APIRouter(prefix="/sessions", tags=["sessions"])


class StartSessionRequest(BaseModel):
    """Request body for POST /sessions."""

    document_id: UUID


class EndSessionRequest(BaseModel):
    """Request body for POST /sessions/{session_id}/end."""

    duration_seconds: int = Field(..., ge=0, description="Elapsed seconds")


class EndSessionResponse(BaseModel):
    """Acknowledgement for POST /sessions/{session_id}/end."""

    session_id: UUID
    status: str = "ended"


class SessionHistoryResponse(BaseModel):
    """Response for GET /sessions."""

    sessions: list[VoiceSessionView]


@router.post("", response_model=SessionStart, status_code=status.HTTP_201_CREATED)
async def start_session(
    request: StartSessionRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    tracker: Annotated[SessionTracker, Depends(get_session_tracker)],
) -> SessionStart:
    """Admit and start a voice session for the caller."""
    return await tracker.start(session, ctx.user_id, request.document_id)


@router.post("/{session_id}/end", response_model=EndSessionResponse)
async def end_session(
    session_id: UUID,
    request: EndSessionRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    tracker: Annotated[SessionTracker, Depends(get_session_tracker)],
) -> EndSessionResponse:
    """Record the end of a voice session and its duration."""
    await tracker.end(session, session_id, request.duration_seconds, requester_id=ctx.user_id)
    return EndSessionResponse(session_id=session_id)


@router.get("", response_model=SessionHistoryResponse)
async def list_sessions(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    tracker: Annotated[SessionTracker, Depends(get_session_tracker)],
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> SessionHistoryResponse:
    """List the caller's recent sessions (empty on plans without history)."""
    sessions = await tracker.history(session, ctx.user_id, limit)
    return SessionHistoryResponse(sessions=sessions)


@router.get("/{session_id}", response_model=VoiceSessionView)
async def get_session_detail(
    session_id: UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    tracker: Annotated[SessionTracker, Depends(get_session_tracker)],
) -> VoiceSessionView:
    """Fetch one of the caller's sessions."""
    view = await tracker.get(session, session_id)
    if view.owner_id != ctx.user_id:
        raise AuthorizationError("Voice sessions are only visible to their owner")
    return view
