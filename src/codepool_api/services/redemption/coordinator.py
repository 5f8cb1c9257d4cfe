"""Exactly-once code allocation per (player, category)."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from loguru import logger
from opentelemetry import trace
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from codepool_api.core.errors import UnavailableCause
from codepool_api.core.settings import settings
from codepool_api.models.code import CodeCategory, CodeRedemption, RedemptionCode
from codepool_api.observability.redemptions import get_redemption_store
from codepool_api.services.redemption.exclusion import (
    ExclusionScope,
    exclusion_key,
    resolve_exclusion_scope,
)
from codepool_api.services.redemption.failures import classify_store_failure, to_store_error
from codepool_api.services.redemption.results import (
    Allocated,
    AlreadyRedeemed,
    OutOfStock,
    RedeemResult,
    Unavailable,
    outcome_label,
)


_tracer = trace.get_tracer(__name__)


class _AllocationContention(Exception):
    """Every compare-and-set attempt lost to a concurrent allocation."""


def truncate_correlation_id(value: str | None, limit: int | None = None) -> str | None:
    if value is None:
        return None
    limit = limit or settings.correlation_id_max_length
    return value[:limit]


class RedemptionCoordinator:
    """Combines the ledger idempotency check with FIFO inventory allocation.

    Each ``redeem`` call runs in its own transaction:

    1. hold the ``(player, category)`` exclusion scope for the transaction,
    2. return the existing ledger entry if the player already redeemed,
    3. otherwise select the lowest-id available code (skipping rows locked by
       concurrent transactions), mark it used and append a ledger entry.

    Any failure rolls the whole unit back.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        exclusion_scope: ExclusionScope | None = None,
        timeout_seconds: float | None = None,
        allocation_attempts: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._exclusion_scope = exclusion_scope
        self._timeout = timeout_seconds or settings.redeem_timeout_seconds
        self._allocation_attempts = allocation_attempts or settings.redeem_allocation_attempts

    async def redeem(
        self,
        category: CodeCategory,
        player_id: int,
        correlation_id: str | None = None,
    ) -> RedeemResult:
        """Redeem a code for ``player_id``; raises ``StoreFailureError`` on internal failures."""

        correlation_id = truncate_correlation_id(correlation_id)
        store = get_redemption_store()

        with _tracer.start_as_current_span("redemption.redeem") as span:
            span.set_attribute("redemption.category", category.value)
            span.set_attribute("redemption.player_id", player_id)
            try:
                result = await asyncio.wait_for(
                    self._redeem_with_race_retry(category, player_id, correlation_id),
                    timeout=self._timeout,
                )
            except _AllocationContention:
                result = Unavailable(category=category, cause=UnavailableCause.CONTENTION)
            except (asyncio.TimeoutError, SQLAlchemyError, OSError) as exc:
                cause = classify_store_failure(exc)
                if cause is None:
                    store.record_outcome(category.value, "internal_error")
                    span.set_attribute("redemption.outcome", "internal_error")
                    raise to_store_error(exc, operation="redeem") from exc
                result = Unavailable(category=category, cause=cause)

            label = outcome_label(result)
            span.set_attribute("redemption.outcome", label)
            store.record_outcome(category.value, label)

        if isinstance(result, Unavailable):
            logger.warning(
                "Redemption unavailable",
                category=category.value,
                player_id=player_id,
                cause=result.cause.value,
            )
        else:
            logger.info(
                "Redemption resolved",
                category=category.value,
                player_id=player_id,
                outcome=label,
                code_id=getattr(result, "code_id", None),
                correlation_id=correlation_id,
            )
        return result

    async def _redeem_with_race_retry(
        self,
        category: CodeCategory,
        player_id: int,
        correlation_id: str | None,
    ) -> RedeemResult:
        try:
            return await self._redeem_once(category, player_id, correlation_id)
        except IntegrityError:
            # Uniqueness on the ledger caught a race the exclusion scope did not;
            # the unit was rolled back, so a second pass observes the winner.
            logger.warning(
                "Detected race when recording redemption",
                category=category.value,
                player_id=player_id,
            )
            return await self._redeem_once(category, player_id, correlation_id)

    async def _redeem_once(
        self,
        category: CodeCategory,
        player_id: int,
        correlation_id: str | None,
    ) -> RedeemResult:
        async with self._session_factory() as session:
            async with session.begin():
                scope = self._exclusion_scope or resolve_exclusion_scope(session)
                await scope.acquire(session, exclusion_key(player_id, category))

                existing = await self._find_existing(session, category, player_id)
                if existing is not None:
                    code_id, code = existing
                    return AlreadyRedeemed(code=code, code_id=code_id, category=category)

                for _ in range(self._allocation_attempts):
                    candidate = await self._select_next_available(session, category)
                    if candidate is None:
                        return OutOfStock(category=category)

                    code_id, code = candidate
                    if not await self._mark_used(session, code_id):
                        logger.debug("Lost allocation race; reselecting", code_id=code_id)
                        continue

                    await self._append_ledger(
                        session,
                        code_id=code_id,
                        category=category,
                        player_id=player_id,
                        correlation_id=correlation_id,
                    )
                    return Allocated(code=code, code_id=code_id, category=category)

                raise _AllocationContention()

    async def _find_existing(
        self,
        session: AsyncSession,
        category: CodeCategory,
        player_id: int,
    ) -> tuple[int, str] | None:
        stmt = (
            select(RedemptionCode.id, RedemptionCode.code)
            .join(CodeRedemption, CodeRedemption.code_id == RedemptionCode.id)
            .where(
                CodeRedemption.player_id == player_id,
                CodeRedemption.category == category,
            )
            .limit(1)
        )
        row = (await session.execute(stmt)).first()
        return (row.id, row.code) if row is not None else None

    async def _select_next_available(
        self,
        session: AsyncSession,
        category: CodeCategory,
    ) -> tuple[int, str] | None:
        stmt = (
            select(RedemptionCode.id, RedemptionCode.code)
            .where(
                RedemptionCode.category == category,
                RedemptionCode.used_at.is_(None),
            )
            .order_by(RedemptionCode.id.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
        )
        row = (await session.execute(stmt)).first()
        return (row.id, row.code) if row is not None else None

    async def _mark_used(self, session: AsyncSession, code_id: int) -> bool:
        stmt = (
            update(RedemptionCode)
            .where(RedemptionCode.id == code_id, RedemptionCode.used_at.is_(None))
            .values(used_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    async def _append_ledger(
        self,
        session: AsyncSession,
        *,
        code_id: int,
        category: CodeCategory,
        player_id: int,
        correlation_id: str | None,
    ) -> CodeRedemption:
        entry = CodeRedemption(
            code_id=code_id,
            player_id=player_id,
            category=category,
            correlation_id=correlation_id,
        )
        session.add(entry)
        await session.flush()
        return entry


__all__ = ["RedemptionCoordinator", "truncate_correlation_id"]
