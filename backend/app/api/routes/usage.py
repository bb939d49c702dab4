"""Usage endpoints - plan, limits and admission checks."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.auth import get_current_context, get_optional_context
from backend.app.api.deps import get_quota_ledger
from backend.app.db.context import RequestContext
from backend.app.db.engine import get_session
from backend.app.models.common import ResourceKind
from backend.app.models.quota import Admission, UsageSummary
from backend.app.quota.ledger import QuotaLedger

router = APIRouter(prefix="/usage", tags=["usage"])


@router.get("", response_model=UsageSummary)
async def get_usage(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    ledger: Annotated[QuotaLedger, Depends(get_quota_ledger)],
) -> UsageSummary:
    """Current plan, its limits and the caller's usage."""
    return await ledger.usage(session, ctx.user_id)


@router.get("/admission/{resource}", response_model=Admission)
async def check_admission(
    resource: ResourceKind,
    ctx: Annotated[RequestContext | None, Depends(get_optional_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    ledger: Annotated[QuotaLedger, Depends(get_quota_ledger)],
) -> Admission:
    """Would one more document/session be admitted right now?

    Read-only; anonymous callers are evaluated on the free tier.
    """
    return await ledger.admit(session, ctx.user_id if ctx else None, resource)
