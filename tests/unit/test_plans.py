"""Unit tests for plan limits and billing periods."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from backend.app.models.common import PlanTier, ResourceKind
from backend.app.quota.plans import (
    PLAN_LIMITS,
    billing_period_key,
    current_billing_period_start,
    get_plan_limits,
)


def test_every_tier_has_limits() -> None:
    """All plan tiers are covered by the limits table."""
    assert set(PLAN_LIMITS) == set(PlanTier)


@pytest.mark.parametrize(
    ("plan", "documents", "sessions", "minutes", "history"),
    [
        (PlanTier.free, 1, 5, 5, False),
        (PlanTier.standard, 10, 100, 15, True),
        (PlanTier.pro, 100, None, 60, True),
    ],
)
def test_plan_limits(
    plan: PlanTier, documents: int, sessions: int | None, minutes: int, history: bool
) -> None:
    """Limits match the published plan table."""
    limits = get_plan_limits(plan)

    assert limits.max_documents == documents
    assert limits.max_sessions_per_month == sessions
    assert limits.max_session_minutes == minutes
    assert limits.has_session_history is history
    assert limits.limit_for(ResourceKind.documents) == documents
    assert limits.limit_for(ResourceKind.sessions) == sessions


def test_billing_period_starts_first_of_month_utc() -> None:
    """Mid-month instants map to 00:00 on the 1st."""
    now = datetime(2026, 3, 15, 12, 30, 45, tzinfo=timezone.utc)

    start = current_billing_period_start(now, timezone.utc)

    assert start == datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert start.tzinfo is not None


def test_billing_period_uses_reference_timezone() -> None:
    """Early UTC hours on the 1st still belong to the previous month further west."""
    new_york = ZoneInfo("America/New_York")
    now = datetime(2026, 3, 1, 3, 0, tzinfo=timezone.utc)

    start = current_billing_period_start(now, new_york)

    assert start == datetime(2026, 2, 1, tzinfo=new_york)
    assert billing_period_key(start) == "2026-02"


def test_billing_period_key_format() -> None:
    """Keys are zero-padded year-month."""
    assert billing_period_key(datetime(2026, 9, 1, tzinfo=timezone.utc)) == "2026-09"
