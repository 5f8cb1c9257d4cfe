from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from codepool_api.api.dependencies.redemption import get_inventory_service
from codepool_api.api.dependencies.security import require_admin_api_key
from codepool_api.models.code import CodeCategory
from codepool_api.services.redemption import CodeInventoryService


router = APIRouter(tags=["stats"])


class CategoryStatsResponse(BaseModel):
    category: CodeCategory
    remaining: int
    used: int


class StatsResponse(BaseModel):
    stats: list[CategoryStatsResponse]


@router.get(
    "/stats",
    response_model=StatsResponse,
    dependencies=[Depends(require_admin_api_key)],
    summary="Remaining and used code counts per category",
)
async def inventory_stats(inventory: CodeInventoryService = Depends(get_inventory_service)) -> StatsResponse:
    rows = await inventory.stats()
    return StatsResponse(
        stats=[
            CategoryStatsResponse(category=row.category, remaining=row.remaining, used=row.used)
            for row in rows
        ]
    )
