"""Quota ledger - plan-based admission for billed resources."""

import uuid
from collections.abc import Callable
from datetime import datetime, timezone, tzinfo
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.models import QuotaCounter, VoiceSession
from backend.app.docs.store import DocumentStore
from backend.app.errors import QuotaExceededError
from backend.app.models.common import PlanTier, ResourceKind
from backend.app.models.quota import Admission, UsageSummary
from backend.app.quota.plans import (
    LIFETIME_PERIOD,
    billing_period_key,
    current_billing_period_start,
    get_plan_limits,
)
from backend.app.quota.resolver import PlanResolver
from backend.app.utils.logging import StructuredEventLogger
from backend.app.utils.metrics import PrometheusServiceMetrics


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuotaLedger:
    """Checks resource usage against the owner's plan.

    ``admit`` is a read-only check for display. Every resource-creating
    operation goes through ``reserve`` instead, which serializes concurrent
    admissions for the same owner and resource on a counter row inside the
    caller's transaction. The caller inserts the resource and commits; a
    rollback releases the reservation.
    """

    def __init__(
        self,
        resolver: PlanResolver,
        *,
        billing_tz: tzinfo = timezone.utc,
        clock: Callable[[], datetime] = _utcnow,
        metrics: PrometheusServiceMetrics | None = None,
        event_logger: StructuredEventLogger | None = None,
    ) -> None:
        """Initialize ledger.

        Args:
            resolver: Plan lookup capability
            billing_tz: Time zone whose calendar months are billing periods
            clock: Returns the current timezone-aware time (for testing)
            metrics: Metrics sink
            event_logger: Structured decision logger
        """
        self._resolver = resolver
        self._billing_tz = billing_tz
        self._clock = clock
        self._metrics = metrics or PrometheusServiceMetrics()
        self._events = event_logger or StructuredEventLogger()

    def now(self) -> datetime:
        return self._clock()

    def current_period_start(self) -> datetime:
        """Start of the billing period in effect right now."""
        return current_billing_period_start(self._clock(), self._billing_tz)

    async def resolve_plan(self, owner_id: str | None) -> PlanTier:
        return await self._resolver.resolve(owner_id)

    async def count_usage(
        self,
        session: AsyncSession,
        owner_id: str,
        resource: ResourceKind,
        period_start: datetime,
    ) -> int:
        """Count live usage of a resource.

        Documents are counted over the owner's lifetime; sessions only within
        the given billing period.
        """
        if resource == ResourceKind.documents:
            return await DocumentStore(session).count_documents(owner_id)

        result = await session.execute(
            select(func.count())
            .select_from(VoiceSession)
            .where(
                VoiceSession.owner_id == owner_id,
                VoiceSession.billing_period_start == period_start,
            )
        )
        return int(result.scalar_one())

    async def admit(
        self, session: AsyncSession, owner_id: str | None, resource: ResourceKind
    ) -> Admission:
        """Check whether the owner may create one more unit of a resource.

        Read-only; nothing is reserved. Anonymous callers are evaluated on the
        free tier with zero usage.
        """
        plan = await self._resolver.resolve(owner_id)
        limit = get_plan_limits(plan).limit_for(resource)
        period_start = self.current_period_start()

        used = 0
        if owner_id is not None:
            used = await self.count_usage(session, owner_id, resource, period_start)

        admission = Admission(
            allowed=limit is None or used < limit,
            resource=resource,
            plan=plan,
            limit=limit,
            used=used,
            billing_period_start=period_start,
        )

        if owner_id is not None:
            self._events.log_admission(owner_id, admission)

        return admission

    async def reserve(
        self,
        session: AsyncSession,
        owner_id: str,
        resource: ResourceKind,
        *,
        plan: PlanTier | None = None,
    ) -> Admission:
        """Admit one unit of a resource atomically with its creation.

        Locks the owner's counter row, counts usage under that lock and
        records the admitted total. Nothing is committed here.

        Callers resolve ``plan`` before opening the transaction (see
        ``begin_write``) so no lock is held across the external lookup.
        Without it the plan is resolved here, inside the caller's transaction.

        Raises:
            QuotaExceededError: If the plan limit is already reached
        """
        if plan is None:
            plan = await self._resolver.resolve(owner_id)
        limit = get_plan_limits(plan).limit_for(resource)
        period_start = self.current_period_start()
        period_key = (
            LIFETIME_PERIOD
            if resource == ResourceKind.documents
            else billing_period_key(period_start)
        )

        counter = await self._lock_counter(session, owner_id, resource, period_key)
        used = await self.count_usage(session, owner_id, resource, period_start)

        admission = Admission(
            allowed=limit is None or used < limit,
            resource=resource,
            plan=plan,
            limit=limit,
            used=used,
            billing_period_start=period_start,
        )

        self._events.log_admission(owner_id, admission)
        self._metrics.record_quota_decision(resource.value, plan.value, admission.allowed)

        if not admission.allowed:
            assert limit is not None
            raise QuotaExceededError(plan=plan.value, limit=limit, resource=resource.value)

        counter.used = used + 1
        await session.flush()

        return admission

    async def usage(self, session: AsyncSession, owner_id: str) -> UsageSummary:
        """Summarize plan, limits and usage for an owner."""
        plan = await self._resolver.resolve(owner_id)
        period_start = self.current_period_start()

        return UsageSummary(
            plan=plan,
            limits=get_plan_limits(plan),
            documents_used=await self.count_usage(
                session, owner_id, ResourceKind.documents, period_start
            ),
            sessions_used=await self.count_usage(
                session, owner_id, ResourceKind.sessions, period_start
            ),
            billing_period_start=period_start,
        )

    async def _lock_counter(
        self,
        session: AsyncSession,
        owner_id: str,
        resource: ResourceKind,
        period_key: str,
    ) -> QuotaCounter:
        """Ensure the counter row exists and lock it for this transaction."""
        values: dict[str, Any] = {
            "counter_id": uuid.uuid4(),
            "owner_id": owner_id,
            "resource": resource.value,
            "period_key": period_key,
            "used": 0,
        }
        conflict_cols = ["owner_id", "resource", "period_key"]

        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            await session.execute(
                pg_insert(QuotaCounter).values(**values).on_conflict_do_nothing(
                    index_elements=conflict_cols
                )
            )
        elif dialect == "sqlite":
            await session.execute(
                sqlite_insert(QuotaCounter).values(**values).on_conflict_do_nothing(
                    index_elements=conflict_cols
                )
            )

        stmt = (
            select(QuotaCounter)
            .where(
                QuotaCounter.owner_id == owner_id,
                QuotaCounter.resource == resource.value,
                QuotaCounter.period_key == period_key,
            )
            .with_for_update()
        )
        counter = (await session.execute(stmt)).scalar_one_or_none()

        if counter is None:
            # Dialects without an upsert; the unique constraint still guards it
            counter = QuotaCounter(**values)
            session.add(counter)
            await session.flush()

        return counter
