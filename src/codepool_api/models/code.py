"""Redemption code inventory and ledger models."""

from __future__ import annotations

from enum import Enum

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
    text,
)

from codepool_api.db.base import Base


# SQLite only autoincrements INTEGER PRIMARY KEY columns.
_BigIdentity = BigInteger().with_variant(Integer, "sqlite")

# Largest value a signed BIGINT column holds.
BIGINT_MAX = 2**63 - 1
CORRELATION_ID_WIDTH = 128


class CodeCategory(str, Enum):
    """Closed set of reward categories a code can belong to."""

    CASHBACK = "gopay_cashback"
    COINS = "gopay_coins"

    @classmethod
    def accepted(cls) -> str:
        return " | ".join(member.value for member in cls)


_category_enum = SqlEnum(
    CodeCategory,
    name="code_category",
    values_callable=lambda members: [member.value for member in members],
)


class RedemptionCode(Base):
    """Pre-seeded single-use code; ``used_at`` is its only mutable field."""

    __tablename__ = "codes"
    __table_args__ = (
        UniqueConstraint("category", "code", name="uq_codes_category_code"),
        Index(
            "ix_codes_available_fifo",
            "category",
            "id",
            postgresql_where=text("used_at IS NULL"),
        ),
    )

    id = Column(_BigIdentity, primary_key=True, autoincrement=True)
    category = Column(_category_enum, nullable=False)
    code = Column(String, nullable=False, index=True)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class CodeRedemption(Base):
    """Append-only ledger row recording who consumed which code."""

    __tablename__ = "code_redemptions"
    __table_args__ = (
        UniqueConstraint("code_id", name="uq_code_redemptions_code_id"),
        UniqueConstraint("player_id", "category", name="uq_code_redemptions_player_category"),
    )

    id = Column(_BigIdentity, primary_key=True, autoincrement=True)
    code_id = Column(_BigIdentity, ForeignKey("codes.id"), nullable=False)
    player_id = Column(BigInteger, nullable=True)
    category = Column(_category_enum, nullable=False)
    correlation_id = Column(String(CORRELATION_ID_WIDTH), nullable=True)
    redeemed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


__all__ = ["BIGINT_MAX", "CORRELATION_ID_WIDTH", "CodeCategory", "CodeRedemption", "RedemptionCode"]
