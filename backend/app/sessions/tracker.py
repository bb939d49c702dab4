"""Voice session tracker - lifecycle of billed usage events."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.engine import begin_write
from backend.app.db.models import Document, VoiceSession
from backend.app.errors import (
    AuthorizationError,
    InvalidArgumentError,
    NotFoundError,
    ServiceError,
)
from backend.app.models.common import ResourceKind
from backend.app.models.sessions import SessionStart, VoiceSessionView
from backend.app.quota.ledger import QuotaLedger
from backend.app.quota.plans import get_plan_limits

logger = logging.getLogger(__name__)


class SessionTracker:
    """Starts and ends voice sessions under quota admission.

    A session is Started on creation and Ended once ``end`` sets its end
    time and duration. ``end`` is not guarded against a second call: the
    later call overwrites the earlier one.
    """

    def __init__(self, ledger: QuotaLedger) -> None:
        self._ledger = ledger

    async def start(
        self, session: AsyncSession, owner_id: str, document_id: uuid.UUID
    ) -> SessionStart:
        """Admit and open a new voice session.

        Returns:
            SessionStart with the plan's per-session cutoff in minutes

        Raises:
            NotFoundError: If the document does not exist
            QuotaExceededError: If the monthly session limit is reached
        """
        # Resolve before the write transaction opens; no lock spans the lookup
        plan = await self._ledger.resolve_plan(owner_id)
        await begin_write(session)

        try:
            if await session.get(Document, document_id) is None:
                raise NotFoundError(f"Document {document_id} not found")

            admission = await self._ledger.reserve(
                session, owner_id, ResourceKind.sessions, plan=plan
            )
        except ServiceError:
            await session.rollback()
            raise

        billing_period_start = self._ledger.current_period_start()

        voice_session = VoiceSession(
            session_id=uuid.uuid4(),
            owner_id=owner_id,
            document_id=document_id,
            started_at=self._ledger.now(),
            ended_at=None,
            billing_period_start=billing_period_start,
            duration_seconds=0,
        )
        session.add(voice_session)
        await session.commit()

        logger.info(
            f"[session_start] session_id={voice_session.session_id} owner_id={owner_id} "
            f"document_id={document_id} plan={admission.plan.value}"
        )

        return SessionStart(
            session_id=voice_session.session_id,
            max_duration_minutes=get_plan_limits(admission.plan).max_session_minutes,
            billing_period_start=billing_period_start,
            plan=admission.plan,
        )

    async def end(
        self,
        session: AsyncSession,
        session_id: uuid.UUID,
        duration_seconds: int,
        *,
        requester_id: str | None = None,
    ) -> None:
        """Close a voice session with its final duration.

        Args:
            session: Async database session
            session_id: Voice session to close
            duration_seconds: Elapsed seconds reported by the client
            requester_id: When given, must be the session owner

        Raises:
            InvalidArgumentError: If duration_seconds is negative
            NotFoundError: If the session does not exist
            AuthorizationError: If requester_id is not the owner
        """
        if duration_seconds < 0:
            raise InvalidArgumentError("duration_seconds must be non-negative")

        await begin_write(session)

        voice_session = await session.get(VoiceSession, session_id)
        if voice_session is None:
            await session.rollback()
            raise NotFoundError(f"Voice session {session_id} not found")

        if requester_id is not None and voice_session.owner_id != requester_id:
            await session.rollback()
            raise AuthorizationError("Voice sessions can only be ended by their owner")

        voice_session.ended_at = self._ledger.now()
        voice_session.duration_seconds = duration_seconds
        await session.commit()

        logger.info(f"[session_end] session_id={session_id} duration_seconds={duration_seconds}")

    async def get(self, session: AsyncSession, session_id: uuid.UUID) -> VoiceSessionView:
        """Fetch one voice session.

        Raises:
            NotFoundError: If the session does not exist
        """
        voice_session = await session.get(VoiceSession, session_id)
        if voice_session is None:
            raise NotFoundError(f"Voice session {session_id} not found")
        return VoiceSessionView.model_validate(voice_session)

    async def history(
        self, session: AsyncSession, owner_id: str, limit: int = 20
    ) -> list[VoiceSessionView]:
        """Most recent sessions for an owner.

        Empty when the owner's plan does not retain session history.
        """
        plan = await self._ledger.resolve_plan(owner_id)
        if not get_plan_limits(plan).has_session_history:
            return []

        result = await session.execute(
            select(VoiceSession)
            .where(VoiceSession.owner_id == owner_id)
            .order_by(VoiceSession.started_at.desc())
            .limit(limit)
        )
        return [VoiceSessionView.model_validate(row) for row in result.scalars().all()]
