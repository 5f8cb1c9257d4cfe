"""Service dependencies for redemption endpoints."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from codepool_api.db.session import get_session, get_session_factory
from codepool_api.services.redemption import CodeInventoryService, RedemptionCoordinator


async def get_redemption_coordinator(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> RedemptionCoordinator:
    return RedemptionCoordinator(session_factory)


async def get_inventory_service(db: AsyncSession = Depends(get_session)) -> CodeInventoryService:
    return CodeInventoryService(db)
