from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from codepool_api.core.errors import CodepoolError
from codepool_api.core.settings import settings
from codepool_api.db.session import get_session
from codepool_api.services.redemption import with_deadline


router = APIRouter()


class ComponentStatus(BaseModel):
    status: Literal["ready", "disabled", "error"]
    detail: str | None = Field(default=None, description="Human readable status detail")
    last_error_at: str | None = Field(default=None, description="ISO timestamp of most recent error")


class ReadinessPayload(BaseModel):
    status: Literal["ready", "degraded", "error"]
    components: Dict[str, ComponentStatus]


@router.get("/healthz", summary="Service health check")
async def service_health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz", summary="Service readiness", response_model=ReadinessPayload)
async def service_readiness(session: AsyncSession = Depends(get_session)) -> ReadinessPayload:
    components: Dict[str, ComponentStatus] = {
        "database": await _evaluate_database_component(session),
    }

    if not settings.redeem_secret_key or not settings.admin_secret_key:
        components["credentials"] = ComponentStatus(
            status="error",
            detail="REDEEM_SECRET_KEY and ADMIN_SECRET_KEY must both be configured",
        )
    else:
        components["credentials"] = ComponentStatus(status="ready")

    status: Literal["ready", "degraded", "error"] = "ready"
    if components["database"].status == "error":
        status = "error"
    elif components["credentials"].status == "error":
        status = "degraded"
    return ReadinessPayload(status=status, components=components)


async def _evaluate_database_component(session: AsyncSession) -> ComponentStatus:
    try:
        await with_deadline(
            session.execute(text("SELECT 1")),
            seconds=settings.redeem_timeout_seconds,
            operation="readiness_ping",
        )
    except CodepoolError as error:
        return ComponentStatus(
            status="error",
            detail=f"Database check failed ({error.error})",
            last_error_at=datetime.now(timezone.utc).isoformat(),
        )
    return ComponentStatus(status="ready", detail=f"Lock backend: {settings.redeem_lock_backend}")
