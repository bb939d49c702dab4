"""Plan limits table and billing period helpers.

The limits are static data, identical across deployments for a given plan
name, so they live in code rather than in settings.
"""

from datetime import datetime, tzinfo

from backend.app.models.common import PlanTier
from backend.app.models.quota import PlanLimits

PLAN_LIMITS: dict[PlanTier, PlanLimits] = {
    PlanTier.free: PlanLimits(
        max_documents=1,
        max_sessions_per_month=5,
        max_session_minutes=5,
        has_session_history=False,
    ),
    PlanTier.standard: PlanLimits(
        max_documents=10,
        max_sessions_per_month=100,
        max_session_minutes=15,
        has_session_history=True,
    ),
    PlanTier.pro: PlanLimits(
        max_documents=100,
        max_sessions_per_month=None,
        max_session_minutes=60,
        has_session_history=True,
    ),
}

# Period key for resources counted over the owner's lifetime
LIFETIME_PERIOD = "lifetime"


def get_plan_limits(plan: PlanTier) -> PlanLimits:
    """Look up the limits for a plan tier."""
    return PLAN_LIMITS[plan]


def current_billing_period_start(now: datetime, tz: tzinfo) -> datetime:
    """First instant of the calendar month containing ``now`` in ``tz``.

    Args:
        now: Timezone-aware current time
        tz: Billing reference time zone

    Returns:
        Timezone-aware datetime at 00:00 on the 1st of the month
    """
    local = now.astimezone(tz)
    return local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def billing_period_key(period_start: datetime) -> str:
    """Stable string key for a billing period, e.g. "2026-10"."""
    return period_start.strftime("%Y-%m")
