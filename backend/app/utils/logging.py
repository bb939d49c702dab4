"""Structured logging for quota decisions and searches."""

import logging
from typing import Any
from uuid import UUID

from backend.app.models.quota import Admission

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once at process start."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class StructuredEventLogger:
    """Structured logger for admission and retrieval events."""

    def log_admission(self, owner_id: str, admission: Admission) -> None:
        """Log a quota decision with structured data."""
        log_data: dict[str, Any] = {
            "owner_id": owner_id,
            "resource": admission.resource.value,
            "plan": admission.plan.value,
            "limit": admission.limit,
            "used": admission.used,
            "allowed": admission.allowed,
        }

        log_msg = f"Quota admission: {admission.resource.value} - " + (
            "allowed" if admission.allowed else "denied"
        )

        if admission.allowed:
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})

    def log_search(
        self,
        document_id: UUID,
        query: str,
        tier: str,
        result_count: int,
        latency_ms: float,
    ) -> None:
        """Log a completed search with structured data."""
        log_data: dict[str, Any] = {
            "document_id": str(document_id),
            "query": query,
            "tier": tier,
            "result_count": result_count,
            "latency_ms": round(latency_ms, 2),
        }

        logger.info(
            f"Search complete: {result_count} result(s) via {tier}",
            extra={"structured": log_data},
        )
