"""Common types and enums shared across all models."""

from enum import Enum


class PlanTier(str, Enum):
    """Subscription level, lowest first."""

    free = "free"
    standard = "standard"
    pro = "pro"


class ResourceKind(str, Enum):
    """Billed resource gated by the quota ledger."""

    documents = "documents"
    sessions = "sessions"


class SearchTier(str, Enum):
    """Which retrieval tier produced a result set."""

    ranked = "ranked"
    fallback = "fallback"
    none = "none"
