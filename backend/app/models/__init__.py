"""Models package - re-exports for convenience."""

from backend.app.models.common import PlanTier, ResourceKind, SearchTier
from backend.app.models.documents import (
    DocumentAlreadyExists,
    DocumentCreated,
    DocumentInfo,
    IngestOutcome,
    SearchResult,
    SegmentView,
)
from backend.app.models.quota import Admission, PlanLimits, UsageSummary
from backend.app.models.sessions import SessionStart, VoiceSessionView

__all__ = [
    # Common
    "PlanTier",
    "ResourceKind",
    "SearchTier",
    # Documents
    "DocumentInfo",
    "SegmentView",
    "DocumentCreated",
    "DocumentAlreadyExists",
    "IngestOutcome",
    "SearchResult",
    # Quota
    "PlanLimits",
    "Admission",
    "UsageSummary",
    # Sessions
    "SessionStart",
    "VoiceSessionView",
]
