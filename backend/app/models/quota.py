"""Quota and usage models."""

from datetime import datetime

from pydantic import BaseModel

from backend.app.models.common import PlanTier, ResourceKind


class PlanLimits(BaseModel):
    """Resource limits for one plan tier. ``None`` means unbounded."""

    max_documents: int | None
    max_sessions_per_month: int | None
    max_session_minutes: int
    has_session_history: bool

    def limit_for(self, resource: ResourceKind) -> int | None:
        """Numeric ceiling for a billed resource."""
        if resource == ResourceKind.documents:
            return self.max_documents
        return self.max_sessions_per_month


class Admission(BaseModel):
    """Outcome of a quota check."""

    allowed: bool
    resource: ResourceKind
    plan: PlanTier
    limit: int | None
    used: int
    billing_period_start: datetime | None = None


class UsageSummary(BaseModel):
    """Current plan, its limits and what the owner has used."""

    plan: PlanTier
    limits: PlanLimits
    documents_used: int
    sessions_used: int
    billing_period_start: datetime
