"""Read-only accessors over the code inventory and redemption ledger."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from loguru import logger
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from codepool_api.core.settings import settings
from codepool_api.models.code import CodeCategory, CodeRedemption, RedemptionCode
from codepool_api.services.redemption.failures import with_deadline


@dataclass(frozen=True)
class CodeRecord:
    id: int
    category: CodeCategory
    code: str
    used_at: datetime | None
    created_at: datetime | None


@dataclass(frozen=True)
class RedemptionRecord:
    id: int
    redeemed_at: datetime | None
    player_id: int | None
    correlation_id: str | None


@dataclass(frozen=True)
class CodeStatus:
    code: CodeRecord
    redemption: RedemptionRecord | None

    @property
    def used(self) -> bool:
        return self.code.used_at is not None


@dataclass(frozen=True)
class CategoryStock:
    category: CodeCategory
    remaining: int
    used: int


class CodeInventoryService:
    """Status lookup, next-code peek and stock statistics."""

    def __init__(self, db_session: AsyncSession, *, timeout_seconds: float | None = None) -> None:
        self._db = db_session
        self._timeout = timeout_seconds or settings.redeem_timeout_seconds

    async def lookup_by_code(self, code: str, category: CodeCategory | None = None) -> CodeStatus | None:
        """Return the code and, once used, its latest ledger entry."""

        return await with_deadline(
            self._lookup_by_code(code, category),
            seconds=self._timeout,
            operation="code_status",
        )

    async def peek_next_available(self, category: CodeCategory) -> CodeRecord | None:
        """The code a redemption would receive right now; no reservation is made."""

        return await with_deadline(
            self._peek_next_available(category),
            seconds=self._timeout,
            operation="peek",
        )

    async def stats(self) -> list[CategoryStock]:
        return await with_deadline(self._stats(), seconds=self._timeout, operation="stats")

    async def _lookup_by_code(self, code: str, category: CodeCategory | None) -> CodeStatus | None:
        stmt = select(RedemptionCode).where(RedemptionCode.code == code)
        if category is not None:
            stmt = stmt.where(RedemptionCode.category == category)
        stmt = stmt.order_by(RedemptionCode.id.asc()).limit(1)

        record = (await self._db.execute(stmt)).scalar_one_or_none()
        if record is None:
            logger.debug("Code not found", category=category.value if category else None)
            return None

        code_record = _to_code_record(record)
        if record.used_at is None:
            return CodeStatus(code=code_record, redemption=None)

        ledger_stmt = (
            select(CodeRedemption)
            .where(CodeRedemption.code_id == record.id)
            .order_by(CodeRedemption.id.desc())
            .limit(1)
        )
        entry = (await self._db.execute(ledger_stmt)).scalar_one_or_none()
        redemption = None
        if entry is not None:
            redemption = RedemptionRecord(
                id=entry.id,
                redeemed_at=entry.redeemed_at,
                player_id=entry.player_id,
                correlation_id=entry.correlation_id,
            )
        return CodeStatus(code=code_record, redemption=redemption)

    async def _peek_next_available(self, category: CodeCategory) -> CodeRecord | None:
        stmt = (
            select(RedemptionCode)
            .where(
                RedemptionCode.category == category,
                RedemptionCode.used_at.is_(None),
            )
            .order_by(RedemptionCode.id.asc())
            .limit(1)
        )
        record = (await self._db.execute(stmt)).scalar_one_or_none()
        return _to_code_record(record) if record is not None else None

    async def _stats(self) -> list[CategoryStock]:
        stmt = select(
            RedemptionCode.category,
            func.sum(case((RedemptionCode.used_at.is_(None), 1), else_=0)).label("remaining"),
            func.sum(case((RedemptionCode.used_at.is_not(None), 1), else_=0)).label("used"),
        ).group_by(RedemptionCode.category)

        counts = {
            row.category: (int(row.remaining or 0), int(row.used or 0))
            for row in (await self._db.execute(stmt)).all()
        }
        stock: list[CategoryStock] = []
        for category in CodeCategory:
            remaining, used = counts.get(category, (0, 0))
            stock.append(CategoryStock(category=category, remaining=remaining, used=used))
        return sorted(stock, key=lambda item: item.category.value)


def _to_code_record(record: RedemptionCode) -> CodeRecord:
    return CodeRecord(
        id=record.id,
        category=record.category,
        code=record.code,
        used_at=record.used_at,
        created_at=record.created_at,
    )


__all__ = [
    "CategoryStock",
    "CodeInventoryService",
    "CodeRecord",
    "CodeStatus",
    "RedemptionRecord",
]
