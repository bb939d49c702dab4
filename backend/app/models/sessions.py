"""Voice session models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from backend.app.models.common import PlanTier


class SessionStart(BaseModel):
    """Admitted session and the per-session cutoff the client must enforce."""

    session_id: UUID
    max_duration_minutes: int
    billing_period_start: datetime
    plan: PlanTier


class VoiceSessionView(BaseModel):
    """Stored voice session."""

    model_config = ConfigDict(from_attributes=True)

    session_id: UUID
    owner_id: str
    document_id: UUID
    started_at: datetime
    ended_at: datetime | None = None
    duration_seconds: int = 0
    billing_period_start: datetime
