"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- log_entries ---
    op.create_table(
        "log_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("metadata", sa.Text(), nullable=True, comment="JSON object of arbitrary metadata"),
        sa.Column("ai_analysis", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_log_entries_id", "log_entries", ["id"])
    op.create_index("ix_log_entries_user_id", "log_entries", ["user_id"])
    op.create_index("ix_log_entries_category", "log_entries", ["category"])
    op.create_index("ix_log_entries_created_at", "log_entries", ["created_at"])

    # --- log_embeddings ---
    op.create_table(
        "log_embeddings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("log_id", sa.Integer(), nullable=True),
        sa.Column("user_id", sa.String(128), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("vector", sa.Text(), nullable=False, comment="JSON array of EMBEDDING_DIMENSIONS floats"),
        sa.Column("model", sa.String(128), nullable=True),
        sa.Column("metadata", sa.Text(), nullable=True, comment="JSON object: type, timestamp, log_id …"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["log_id"], ["log_entries.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_log_embeddings_id", "log_embeddings", ["id"])
    op.create_index("ix_log_embeddings_log_id", "log_embeddings", ["log_id"])
    op.create_index("ix_log_embeddings_user_id", "log_embeddings", ["user_id"])

    # --- daily_attunements ---
    op.create_table(
        "daily_attunements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("insightful_question", sa.Text(), nullable=False),
        sa.Column("synthesized_answer", sa.Text(), nullable=False),
        sa.Column("based_on", sa.Text(), nullable=True, comment="JSON provenance: logCount and the *Available flags"),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "date", name="uq_attunement_user_date"),
    )
    op.create_index("ix_daily_attunements_id", "daily_attunements", ["id"])
    op.create_index("ix_daily_attunements_user_id", "daily_attunements", ["user_id"])
    op.create_index("ix_daily_attunements_date", "daily_attunements", ["date"])


def downgrade() -> None:
    op.drop_table("daily_attunements")
    op.drop_table("log_embeddings")
    op.drop_table("log_entries")
