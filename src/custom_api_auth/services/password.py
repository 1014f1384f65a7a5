"""Argon2id password hashing."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from argon2 import PasswordHasher as _Argon2Hasher
from argon2.exceptions import HashingError, InvalidHashError, VerificationError

from custom_api_auth.core.settings import Settings, settings
from custom_api_auth.schemas.common import ServiceResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PasswordService:
    """Thin wrapper around argon2-cffi's PasswordHasher.

    `verify` only ever answers True or False: a wrong password and a
    malformed digest look the same to the caller.
    """

    time_cost: int = 2
    memory_cost: int = 65_536
    parallelism: int = 4
    max_bytes: int = 72

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> PasswordService:
        config = config or settings
        return cls(
            time_cost=config.password_time_cost,
            memory_cost=config.password_memory_cost,
            parallelism=config.password_parallelism,
            max_bytes=config.password_max_bytes,
        )

    def _impl(self) -> _Argon2Hasher:
        return _Argon2Hasher(
            time_cost=self.time_cost,
            memory_cost=self.memory_cost,
            parallelism=self.parallelism,
        )

    def _check_length(self, secret: str) -> str | None:
        if secret == "":
            return "String must be provided to hash."
        try:
            encoded = secret.encode("utf-8")
        except UnicodeEncodeError:
            return "String must be valid UTF-8 text."
        if len(encoded) > self.max_bytes:
            return f"String exceeds the maximum length of {self.max_bytes} bytes."
        return None

    def hash(self, secret: str) -> ServiceResult:
        """Hash `secret`; the digest is returned under `data["hash"]`."""
        error = self._check_length(secret)
        if error:
            return ServiceResult.failure(error, status=400)
        try:
            digest = self._impl().hash(secret)
        except HashingError as err:
            logger.error("Password hashing failed: %s", err)
            return ServiceResult.failure("Failed to hash the string.")
        return ServiceResult.success("Password hash successful.", {"hash": digest})

    def verify(self, secret: str, digest: str) -> bool:
        if not secret or not digest or self._check_length(secret):
            return False
        try:
            return bool(self._impl().verify(digest, secret))
        except (VerificationError, InvalidHashError, UnicodeError):
            return False

    def needs_rehash(self, digest: str) -> bool:
        """Return True if `digest` was produced with different cost parameters."""
        try:
            return self._impl().check_needs_rehash(digest)
        except (InvalidHashError, UnicodeError):
            return True


def get_password_service() -> PasswordService:
    return PasswordService.from_settings()
