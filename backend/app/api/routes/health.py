"""Health check endpoints.

- /health: liveness, always 200 while the process is up
- /healthz: readiness, checks the backing store
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from backend.app.db.engine import Store, get_store

router = APIRouter()


async def check_db(store: Store) -> tuple[bool, str]:
    """Check database connectivity.

    Returns:
        (is_ok, status_message)
    """
    try:
        async with store.session() as session:
            await session.execute(text("SELECT 1"))
        return (True, "ok")
    except (SQLAlchemyError, OSError) as e:
        return (False, f"error: {type(e).__name__}")


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz(store: Annotated[Store, Depends(get_store)]) -> dict[str, Any] | JSONResponse:
    """Readiness check.

    Returns:
        200 with component status if the store is reachable
        503 otherwise
    """
    db_ok, db_status = await check_db(store)

    response_body = {
        "status": "ok" if db_ok else "degraded",
        "components": {
            "db": db_status,
            "db_dialect": store.dialect_name,
        },
    }

    if not db_ok:
        return JSONResponse(content=response_body, status_code=503)

    return response_body
