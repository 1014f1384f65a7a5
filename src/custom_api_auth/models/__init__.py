"""SQLAlchemy models for the auth token service."""

from .session import AuthSession
from .user import User

__all__ = ["AuthSession", "User"]
