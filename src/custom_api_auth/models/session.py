# src/custom_api_auth/models/session.py
"""Server-side session rows backing issued auth tokens."""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, BigInteger, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from custom_api_auth.db.session import Base


class AuthSession(Base):
    """One live session per (token name, user).

    Nonce columns only ever hold keyed hashes. Everything except the
    rotation fields and `additionals` is written once at creation.
    """

    __tablename__ = "auth_sessions"
    __table_args__ = (UniqueConstraint("name", "user", name="uq_auth_sessions_name_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    user: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    nonce: Mapped[str] = mapped_column(String(255), nullable=False)
    refresh_nonce: Mapped[str] = mapped_column(String(255), nullable=False)
    header_nonce: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expiration_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    updated_tally: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    additionals: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def is_expired(self, now: int) -> bool:
        """Return True once the absolute session expiry has been reached."""
        return self.expiration_at <= now
