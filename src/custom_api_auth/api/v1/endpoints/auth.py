# src/custom_api_auth/api/v1/endpoints/auth.py
"""Authentication endpoints issuing and consuming cookie auth tokens."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from custom_api_auth.api.v1.dependencies import (
    AuthTokenServiceDep,
    CurrentUserDep,
    PasswordServiceDep,
    SessionDep,
    SessionStoreDep,
    TransportDep,
)
from custom_api_auth.core.settings import settings
from custom_api_auth.models import User
from custom_api_auth.schemas.auth import (
    AdditionalsUpdateRequest,
    CurrentUserResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    SessionResponse,
    TokenStatus,
)
from custom_api_auth.services.auth_token import TokenClaims

router = APIRouter(prefix="/auth", tags=["authentication"])

INVALID_CREDENTIALS = "Invalid username or password"


@router.post(
    "/register",
    summary="Create a principal with a password",
    status_code=status.HTTP_201_CREATED,
    response_model=MessageResponse,
)
def register_user(
    payload: RegisterRequest,
    db: SessionDep,
    passwords: PasswordServiceDep,
) -> MessageResponse:
    """Hash the password with Argon2id and store the new principal."""
    hashed = passwords.hash(payload.password)
    if not hashed.ok:
        raise HTTPException(status_code=hashed.status, detail=hashed.message)

    db.add(User(username=payload.username, password_hash=hashed.data["hash"]))
    try:
        db.commit()
    except IntegrityError as err:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username is already taken",
        ) from err
    return MessageResponse(message="User registered successfully.")


@router.post(
    "/login",
    summary="Exchange credentials for an auth token",
    response_model=TokenStatus,
)
def login_user(
    payload: LoginRequest,
    db: SessionDep,
    auth: AuthTokenServiceDep,
    passwords: PasswordServiceDep,
    transport: TransportDep,
) -> TokenStatus:
    """Verify the password and issue token cookies plus the nonce header."""
    user = db.execute(select(User).where(User.username == payload.username)).scalars().first()
    if user is None or not passwords.verify(payload.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS,
        )
    if passwords.needs_rehash(user.password_hash):
        rehashed = passwords.hash(payload.password)
        if rehashed.ok:
            user.password_hash = rehashed.data["hash"]
            db.commit()

    result = auth.generate(
        payload.token_name or settings.default_token_name,
        user.id,
        transport,
        ttl=payload.ttl,
    )
    if not result.ok:
        raise HTTPException(status_code=result.status, detail=result.message)

    claims: TokenClaims = result.data
    return TokenStatus(**claims.as_dict())


@router.get("/me", summary="Return the authenticated principal", response_model=CurrentUserResponse)
def read_current_user(current: CurrentUserDep) -> CurrentUserResponse:
    """Validate the token (rotating its secrets) and describe the principal."""
    return CurrentUserResponse(
        id=current.user.id,
        username=current.user.username,
        token=TokenStatus(**current.claims.as_dict()),
    )


@router.get(
    "/sessions",
    summary="List live sessions of the authenticated principal",
    response_model=list[SessionResponse],
)
def list_sessions(current: CurrentUserDep, sessions: SessionStoreDep) -> list[SessionResponse]:
    result = sessions.list_for_user(current.user.id)
    if not result.ok:
        raise HTTPException(status_code=result.status, detail=result.message)
    return [SessionResponse.model_validate(row) for row in result.data]


@router.put(
    "/session/additionals",
    summary="Replace the application data attached to the current session",
    response_model=SessionResponse,
)
def update_session_additionals(
    payload: AdditionalsUpdateRequest,
    current: CurrentUserDep,
    sessions: SessionStoreDep,
) -> SessionResponse:
    result = sessions.update_additionals(current.token_name, current.user.id, payload.additionals)
    if not result.ok:
        raise HTTPException(status_code=result.status, detail=result.message)
    return SessionResponse.model_validate(result.data)


@router.post("/logout", summary="Revoke the current auth token", response_model=MessageResponse)
def logout_user(
    current: CurrentUserDep,
    db: SessionDep,
    auth: AuthTokenServiceDep,
    transport: TransportDep,
) -> MessageResponse:
    """Remove the token cookies and session, and refuse earlier tokens."""
    current.user.logout_at = auth.clock()
    db.commit()

    result = auth.remove(current.token_name, transport, current.user.id)
    if not result.ok:
        raise HTTPException(status_code=result.status, detail=result.message)
    return MessageResponse(message="Logged out successfully.")
