# src/custom_api_auth/models/user.py
"""SQLAlchemy model for principals that can hold auth tokens."""

from __future__ import annotations

from sqlalchemy import BigInteger, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from custom_api_auth.db.session import Base


class User(Base):
    """Principal identified by an integer id with an Argon2id password hash."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(150), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    # Epoch seconds of the last logout; tokens issued at or before it are refused.
    logout_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
