# pyright: reportAttributeAccessIssue=false, reportUndefinedVariable=false
"""create_roll_engine_tables

Revision ID: 4f2c8e1a7b3d
Revises:
Create Date: 2026-10-18 09:30:12.481533

"""

from collections.abc import Sequence

import sqlalchemy as sa
import sqlmodel.sql.sqltypes

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4f2c8e1a7b3d"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "players",
        *_timestamps(),
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("is_ready", sa.Boolean(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_players_id"), "players", ["id"], unique=False)

    op.create_table(
        "rarities",
        *_timestamps(),
        sa.Column("id", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("color", sqlmodel.sql.sqltypes.AutoString(length=7), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_rarities_rank"), "rarities", ["rank"], unique=False)

    op.create_table(
        "items",
        *_timestamps(),
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column("display_name", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True),
        sa.Column("rarity", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=True),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("odds_denominator", sa.Integer(), nullable=True),
        sa.Column("stat_ranges", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("name"),
    )
    op.create_index(op.f("ix_items_rarity"), "items", ["rarity"], unique=False)

    op.create_table(
        "crates",
        *_timestamps(),
        sa.Column("type", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=False),
        sa.Column("luck_multiplier", sa.Float(), nullable=False),
        sa.Column("rank_weight_multipliers", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("type"),
    )

    op.create_table(
        "environments",
        *_timestamps(),
        sa.Column("id", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=False),
        sa.Column("luck_multiplier", sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "roll_pity",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.BigInteger(), nullable=False),
        sa.Column("crate_type", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=False),
        sa.Column("counters", sa.JSON(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "crate_type", name="uq_roll_pity_player_crate"),
    )
    op.create_index(op.f("ix_roll_pity_id"), "roll_pity", ["id"], unique=False)
    op.create_index(op.f("ix_roll_pity_player_id"), "roll_pity", ["player_id"], unique=False)
    op.create_index(op.f("ix_roll_pity_crate_type"), "roll_pity", ["crate_type"], unique=False)

    op.create_table(
        "roll_records",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.BigInteger(), nullable=False),
        sa.Column("crate_type", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=False),
        sa.Column("won_rank", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_roll_records_id"), "roll_records", ["id"], unique=False)
    op.create_index(
        op.f("ix_roll_records_player_id"), "roll_records", ["player_id"], unique=False
    )
    op.create_index(
        op.f("ix_roll_records_crate_type"), "roll_records", ["crate_type"], unique=False
    )

    op.create_table(
        "roll_tokens",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.BigInteger(), nullable=False),
        sa.Column("request_id", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "request_id", name="uq_roll_token_request"),
    )
    op.create_index(op.f("ix_roll_tokens_id"), "roll_tokens", ["id"], unique=False)
    op.create_index(op.f("ix_roll_tokens_player_id"), "roll_tokens", ["player_id"], unique=False)
    op.create_index(
        op.f("ix_roll_tokens_request_id"), "roll_tokens", ["request_id"], unique=False
    )
    op.create_index(
        op.f("ix_roll_tokens_expires_at"), "roll_tokens", ["expires_at"], unique=False
    )
    op.create_index(op.f("ix_roll_tokens_used"), "roll_tokens", ["used"], unique=False)

    op.create_table(
        "active_rolls",
        *_timestamps(),
        sa.Column("player_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("request_id", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("player_id"),
    )
    op.create_index(
        op.f("ix_active_rolls_expires_at"), "active_rolls", ["expires_at"], unique=False
    )

    op.create_table(
        "item_discoveries",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.BigInteger(), nullable=False),
        sa.Column("crate_type", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=False),
        sa.Column("item_name", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "crate_type", "item_name", name="uq_item_discovery"),
    )
    op.create_index(op.f("ix_item_discoveries_id"), "item_discoveries", ["id"], unique=False)
    op.create_index(
        op.f("ix_item_discoveries_player_id"), "item_discoveries", ["player_id"], unique=False
    )

    op.create_table(
        "item_counts",
        *_timestamps(),
        sa.Column("item_name", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column("count", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("item_name"),
    )

    op.create_table(
        "shared_values",
        *_timestamps(),
        sa.Column("key", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )
    op.create_index(
        op.f("ix_shared_values_expires_at"), "shared_values", ["expires_at"], unique=False
    )

    op.create_table(
        "topic_messages",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("topic", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_topic_messages_id"), "topic_messages", ["id"], unique=False)
    op.create_index(op.f("ix_topic_messages_topic"), "topic_messages", ["topic"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("topic_messages")
    op.drop_table("shared_values")
    op.drop_table("item_counts")
    op.drop_table("item_discoveries")
    op.drop_table("active_rolls")
    op.drop_table("roll_tokens")
    op.drop_table("roll_records")
    op.drop_table("roll_pity")
    op.drop_table("environments")
    op.drop_table("crates")
    op.drop_table("items")
    op.drop_table("rarities")
    op.drop_table("players")
