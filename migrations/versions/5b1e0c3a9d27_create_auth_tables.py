"""create users and auth_sessions

Revision ID: 5b1e0c3a9d27
Revises:
Create Date: 2026-10-17 09:12:44.318204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5b1e0c3a9d27"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the principal and session tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=150), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("logout_at", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
    )
    op.create_table(
        "auth_sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("user", sa.BigInteger(), nullable=False),
        sa.Column("nonce", sa.String(length=255), nullable=False),
        sa.Column("refresh_nonce", sa.String(length=255), nullable=False),
        sa.Column("header_nonce", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("expiration_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_tally", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=True),
        sa.Column("additionals", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", "user", name="uq_auth_sessions_name_user"),
    )
    op.create_index("ix_auth_sessions_name", "auth_sessions", ["name"])
    op.create_index("ix_auth_sessions_user", "auth_sessions", ["user"])
    op.create_index("ix_auth_sessions_expiration_at", "auth_sessions", ["expiration_at"])


def downgrade() -> None:
    """Drop the principal and session tables."""
    op.drop_index("ix_auth_sessions_expiration_at", table_name="auth_sessions")
    op.drop_index("ix_auth_sessions_user", table_name="auth_sessions")
    op.drop_index("ix_auth_sessions_name", table_name="auth_sessions")
    op.drop_table("auth_sessions")
    op.drop_table("users")
