"""Shared API dependencies for authentication and common functionality."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Query, Request, Response
from sqlalchemy.orm import Session

from custom_api_auth.core.settings import settings
from custom_api_auth.db.session import get_db
from custom_api_auth.models import User
from custom_api_auth.schemas.common import ServiceResult
from custom_api_auth.services.auth_token import AuthTokenService, TokenClaims
from custom_api_auth.services.cookie import CookieTransport
from custom_api_auth.services.flags import FlagStore, get_flag_store
from custom_api_auth.services.password import PasswordService, get_password_service
from custom_api_auth.services.session_store import SessionStore

logger = logging.getLogger(__name__)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


class TokenRejectedError(Exception):
    """Raised when a request fails token validation.

    Carries the cookie-removal headers written during revocation so the
    exception handler can forward them on the error response.
    """

    def __init__(self, result: ServiceResult, response: Response) -> None:
        super().__init__(result.message)
        self.result = result
        self.response = response


@dataclass(frozen=True)
class AuthenticatedUser:
    """Principal resolved from a validated auth token."""

    user: User
    claims: TokenClaims
    token_name: str


def get_flag_store_dep() -> FlagStore:
    return get_flag_store()


def get_password_service_dep() -> PasswordService:
    return get_password_service()


FlagStoreDep = Annotated[FlagStore, Depends(get_flag_store_dep)]
PasswordServiceDep = Annotated[PasswordService, Depends(get_password_service_dep)]


def get_session_store(db: SessionDep, flags: FlagStoreDep) -> SessionStore:
    return SessionStore(db, flags)


SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]


def get_auth_token_service(sessions: SessionStoreDep) -> AuthTokenService:
    return AuthTokenService(sessions)


AuthTokenServiceDep = Annotated[AuthTokenService, Depends(get_auth_token_service)]


def get_transport(request: Request, response: Response) -> CookieTransport:
    """Bind cookie/header transport to the current request and its response."""
    return CookieTransport(request, response)


TransportDep = Annotated[CookieTransport, Depends(get_transport)]


def get_token_name(
    token_name: Annotated[
        str,
        Query(pattern=r"^[A-Za-z0-9_]{1,64}$", description="Token namespace"),
    ] = settings.default_token_name,
) -> str:
    return token_name


TokenNameDep = Annotated[str, Depends(get_token_name)]


def get_current_user(
    db: SessionDep,
    auth: AuthTokenServiceDep,
    transport: TransportDep,
    token_name: TokenNameDep,
) -> AuthenticatedUser:
    """Validate the request's auth token and load its principal.

    Runs the throttled expired-session sweep first; a failed sweep is
    logged and does not affect the request.

    Raises:
        TokenRejectedError: If the token is missing, invalid or replayed.
    """
    sweep = auth.sessions.sweep_expired()
    if not sweep.ok:
        logger.warning("Expired session sweep failed: %s", sweep.message)

    def _logout_time(user_id: int) -> int | None:
        user = db.get(User, user_id)
        return user.logout_at if user is not None else None

    result = auth.validate(token_name, transport, logout_time_lookup=_logout_time)
    if not result.ok:
        raise TokenRejectedError(result, transport.response)

    claims: TokenClaims = result.data
    user = db.get(User, claims.user_id)
    if user is None:
        auth.remove(token_name, transport, claims.user_id)
        raise TokenRejectedError(
            ServiceResult.failure("Token rejected (unknown principal).", status=401),
            transport.response,
        )
    return AuthenticatedUser(user=user, claims=claims, token_name=token_name)


# Type alias for current user dependency
CurrentUserDep = Annotated[AuthenticatedUser, Depends(get_current_user)]
