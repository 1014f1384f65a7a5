"""Shared result type returned by every service operation."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ServiceResult:
    """Uniform `(ok, status, message, data)` outcome.

    Failures of every category share this shape, so callers can only tell
    them apart by `message`, which is meant for server-side logs.
    """

    ok: bool
    status: int
    message: str = ""
    data: Any = None

    @classmethod
    def success(cls, message: str, data: Any = None, status: int = 200) -> ServiceResult:
        return cls(True, status, message, data)

    @classmethod
    def failure(cls, message: str, status: int = 500, data: Any = None) -> ServiceResult:
        return cls(False, status, message, data)

    def __bool__(self) -> bool:
        return self.ok
