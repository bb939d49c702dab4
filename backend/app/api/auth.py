"""Minimal auth dependency.

Identity verification belongs to the external identity provider; this stub
trusts a "Bearer <user_id>" header so the service can run behind a gateway
that has already authenticated the caller.
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from backend.app.db.context import RequestContext


async def get_optional_context(
    authorization: Annotated[str | None, Header()] = None,
) -> RequestContext | None:
    """Extract request context from the authorization header, if any.

    Args:
        authorization: Authorization header (e.g., "Bearer <user_id>")

    Returns:
        RequestContext, or None for anonymous requests

    Raises:
        HTTPException: If the header is present but malformed
    """
    if not authorization:
        return None

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = authorization[7:].strip()  # Strip "Bearer "

    if not user_id or any(ch.isspace() for ch in user_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid bearer token (expected an opaque user id)",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return RequestContext(user_id=user_id)


async def get_current_context(
    ctx: Annotated[RequestContext | None, Depends(get_optional_context)],
) -> RequestContext:
    """Require an authenticated request context.

    Raises:
        HTTPException: 401 if the request is anonymous
    """
    if ctx is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return ctx
