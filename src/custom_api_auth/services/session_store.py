"""Persistent session store backing issued auth tokens.

A session row is keyed by (token name, user id). Only keyed hashes of the
token nonces are stored; the raw values live exclusively on the client.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Final

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from custom_api_auth.core.settings import Settings, settings
from custom_api_auth.db.time import Clock, epoch_seconds
from custom_api_auth.models import AuthSession
from custom_api_auth.schemas.common import ServiceResult
from custom_api_auth.services.flags import FlagStore

logger = logging.getLogger(__name__)

SWEEP_FLAG_NAME: Final[str] = "sessions_sweep"


def validate_additionals(additionals: Any) -> str | None:
    """Return an error message if `additionals` cannot be stored, else None."""
    if additionals is None:
        return None
    if not isinstance(additionals, Mapping):
        return "Session additionals must be a mapping."
    if not all(isinstance(key, str) for key in additionals):
        return "Session additionals keys must be strings."
    try:
        json.dumps(dict(additionals))
    except (TypeError, ValueError) as err:
        return f"Session additionals must be JSON serializable: {err}"
    return None


class SessionStore:
    """CRUD, rotation bookkeeping and expiry sweep for session rows."""

    def __init__(
        self,
        db: Session,
        flags: FlagStore | None = None,
        clock: Clock = epoch_seconds,
        config: Settings | None = None,
    ) -> None:
        self.db = db
        self.flags = flags or FlagStore()
        self.clock = clock
        self.config = config or settings

    def _find(self, name: str, user: int) -> AuthSession | None:
        stmt = select(AuthSession).where(AuthSession.name == name, AuthSession.user == user)
        return self.db.execute(stmt).scalars().first()

    def _store_error(self, action: str, name: str, user: int, err: Exception) -> ServiceResult:
        self.db.rollback()
        logger.error("Session %s failed for name=%s user=%s: %s", action, name, user, err)
        return ServiceResult.failure(f"Session {action} failed for session name of `{name}`.")

    def generate(
        self,
        name: str,
        user: int,
        nonce_hash: str,
        expiration_at: int,
        additionals: Mapping[str, Any] | None = None,
        refresh_nonce_hash: str = "",
        header_nonce_hash: str = "",
    ) -> ServiceResult:
        """Replace any session for (name, user) with a freshly issued one."""
        error = validate_additionals(additionals)
        if error:
            return ServiceResult.failure(error, status=400)
        if not nonce_hash or not refresh_nonce_hash or not header_nonce_hash:
            return ServiceResult.failure("Session nonce hashes are required.", status=400)

        session_row = AuthSession(
            name=name,
            user=user,
            nonce=nonce_hash,
            refresh_nonce=refresh_nonce_hash,
            header_nonce=header_nonce_hash,
            created_at=self.clock(),
            expiration_at=expiration_at,
            updated_tally=0,
            updated_at=None,
            additionals=dict(additionals or {}),
        )
        try:
            self.db.execute(
                delete(AuthSession).where(AuthSession.name == name, AuthSession.user == user)
            )
            self.db.add(session_row)
            self.db.commit()
        except (SQLAlchemyError, OverflowError) as err:
            # Drivers raise OverflowError for integers wider than the column.
            return self._store_error("generation", name, user, err)

        logger.debug("Session generated for name=%s user=%s", name, user)
        return ServiceResult.success("Session generated successfully.", session_row, status=201)

    def get(self, name: str, user: int) -> ServiceResult:
        """Return the live session for (name, user).

        An expired row is deleted on access and reported as expired.
        """
        try:
            session_row = self._find(name, user)
            if session_row is None:
                return ServiceResult.failure(
                    f"No session found corresponding to the name of `{name}`.", status=404
                )
            if session_row.is_expired(self.clock()):
                self.db.delete(session_row)
                self.db.commit()
                return ServiceResult.failure(
                    f"Session corresponding to the name of `{name}` has expired.", status=401
                )
        except SQLAlchemyError as err:
            return self._store_error("retrieval", name, user, err)
        return ServiceResult.success("Session retrieved successfully.", session_row)

    def update(
        self,
        name: str,
        user: int,
        additionals: Mapping[str, Any] | None,
        refresh_nonce_hash: str,
        header_nonce_hash: str,
        expected_tally: int | None = None,
    ) -> ServiceResult:
        """Rotate the auxiliary nonces of a live session.

        When `expected_tally` is given the write only succeeds if the row
        still carries that `updated_tally`, so of two concurrent rotations
        of the same session exactly one wins.
        """
        error = validate_additionals(additionals)
        if error:
            return ServiceResult.failure(error, status=400)

        current = self.get(name, user)
        if not current.ok:
            return current
        session_row: AuthSession = current.data
        observed = session_row.updated_tally if expected_tally is None else expected_tally

        values: dict[str, Any] = {
            "refresh_nonce": refresh_nonce_hash,
            "header_nonce": header_nonce_hash,
            "updated_tally": observed + 1,
            "updated_at": self.clock(),
        }
        if additionals is not None:
            values["additionals"] = dict(additionals)

        stmt = (
            update(AuthSession)
            .where(AuthSession.id == session_row.id, AuthSession.updated_tally == observed)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            if result.rowcount != 1:
                self.db.rollback()
                logger.warning(
                    "Concurrent session rotation detected for name=%s user=%s", name, user
                )
                return ServiceResult.failure(
                    f"Session corresponding to the name of `{name}` was updated concurrently.",
                    status=409,
                )
            self.db.commit()
            self.db.refresh(session_row)
        except SQLAlchemyError as err:
            return self._store_error("update", name, user, err)

        return ServiceResult.success(
            f"Session data updated successfully corresponding to session name of `{name}`.",
            session_row,
        )

    def update_additionals(
        self, name: str, user: int, additionals: Mapping[str, Any]
    ) -> ServiceResult:
        """Replace only the opaque payload, keeping the current nonces."""
        current = self.get(name, user)
        if not current.ok:
            return current
        session_row: AuthSession = current.data
        return self.update(
            name,
            user,
            additionals,
            session_row.refresh_nonce,
            session_row.header_nonce,
            expected_tally=session_row.updated_tally,
        )

    def delete(self, name: str, user: int) -> ServiceResult:
        """Delete the session for (name, user)."""
        try:
            session_row = self._find(name, user)
            if session_row is None:
                return ServiceResult.failure(
                    f"No session found for deletion for session name of `{name}`.", status=404
                )
            self.db.execute(delete(AuthSession).where(AuthSession.id == session_row.id))
            self.db.commit()
        except SQLAlchemyError as err:
            return self._store_error("deletion", name, user, err)
        return ServiceResult.success(f"Session deleted successfully for session name of `{name}`.")

    def list_for_user(self, user: int) -> ServiceResult:
        """Return every live session of `user` across token names."""
        now = self.clock()
        try:
            stmt = (
                select(AuthSession)
                .where(AuthSession.user == user, AuthSession.expiration_at > now)
                .order_by(AuthSession.name)
            )
            rows = list(self.db.execute(stmt).scalars())
        except SQLAlchemyError as err:
            return self._store_error("listing", "*", user, err)
        return ServiceResult.success("Sessions retrieved successfully.", rows)

    def sweep_expired(self, force: bool = False) -> ServiceResult:
        """Delete every expired row, at most once per refresh interval.

        The flag is claimed before scanning so concurrent requests skip the
        scan instead of all running it.
        """
        if not force and self.flags.is_set(SWEEP_FLAG_NAME):
            return ServiceResult.success("Session sweep skipped.", {"deleted": 0, "skipped": True})
        self.flags.set(SWEEP_FLAG_NAME, self.config.database_refresh_interval)

        now = self.clock()
        try:
            result = self.db.execute(
                delete(AuthSession)
                .where(AuthSession.expiration_at < now)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as err:
            self.db.rollback()
            logger.error("Expired session sweep failed: %s", err)
            return ServiceResult.failure("Expired session sweep failed.")

        deleted = result.rowcount or 0
        if deleted:
            logger.info("Swept %d expired sessions", deleted)
        return ServiceResult.success("Expired sessions removed.", {"deleted": deleted, "skipped": False})
