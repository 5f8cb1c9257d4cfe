"""Create code inventory and redemption ledger."""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "20261017_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


CATEGORY_VALUES = ("gopay_cashback", "gopay_coins")


def _category_type(bind) -> sa.types.TypeEngine:
    if bind.dialect.name == "postgresql":
        return postgresql.ENUM(*CATEGORY_VALUES, name="code_category", create_type=False)
    return sa.Enum(*CATEGORY_VALUES, name="code_category")


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute("""
            DO $$ BEGIN
                IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'code_category') THEN
                    CREATE TYPE code_category AS ENUM ('gopay_cashback', 'gopay_coins');
                END IF;
            END $$;
        """)

    category_type = _category_type(bind)
    identity = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

    op.create_table(
        "codes",
        sa.Column("id", identity, primary_key=True, autoincrement=True),
        sa.Column("category", category_type, nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("category", "code", name="uq_codes_category_code"),
    )
    op.create_index("ix_codes_code", "codes", ["code"])
    op.create_index(
        "ix_codes_available_fifo",
        "codes",
        ["category", "id"],
        postgresql_where=sa.text("used_at IS NULL"),
    )

    op.create_table(
        "code_redemptions",
        sa.Column("id", identity, primary_key=True, autoincrement=True),
        sa.Column("code_id", identity, sa.ForeignKey("codes.id"), nullable=False),
        sa.Column("player_id", sa.BigInteger(), nullable=True),
        sa.Column("category", category_type, nullable=False),
        sa.Column("correlation_id", sa.String(length=128), nullable=True),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("code_id", name="uq_code_redemptions_code_id"),
        sa.UniqueConstraint("player_id", "category", name="uq_code_redemptions_player_category"),
    )


def downgrade() -> None:
    op.drop_table("code_redemptions")
    op.drop_index("ix_codes_available_fifo", table_name="codes")
    op.drop_index("ix_codes_code", table_name="codes")
    op.drop_table("codes")
    if op.get_bind().dialect.name == "postgresql":
        op.execute("DROP TYPE IF EXISTS code_category")
