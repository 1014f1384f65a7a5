"""Auth-related Pydantic schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Ten years.
MAX_TOKEN_TTL_SECONDS = 315_360_000


class RegisterRequest(BaseModel):
    """New principal credentials."""

    username: str = Field(..., min_length=1, max_length=150)
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    """Credentials exchanged for an auth token."""

    username: str = Field(..., min_length=1, max_length=150)
    password: str = Field(..., min_length=1)
    token_name: str | None = Field(
        None,
        pattern=r"^[A-Za-z0-9_]{1,64}$",
        description="Token namespace; defaults to the configured token name",
    )
    ttl: int | None = Field(
        None, ge=1, le=MAX_TOKEN_TTL_SECONDS, description="Token lifetime in seconds"
    )


class TokenStatus(BaseModel):
    """Metadata about an issued or validated token. Never carries secrets."""

    id: int = Field(..., description="Authenticated principal id")
    issued_at: str = Field(..., description="ISO-8601 issuance time")
    expires_at: str = Field(..., description="ISO-8601 expiry time")

    model_config = ConfigDict(from_attributes=True)


class CurrentUserResponse(BaseModel):
    """Principal returned by the `me` endpoint."""

    id: int
    username: str
    token: TokenStatus


class AdditionalsUpdateRequest(BaseModel):
    """Opaque application data attached to the caller's session."""

    additionals: dict[str, Any] = Field(default_factory=dict)


class SessionResponse(BaseModel):
    """Public view of a session row (hashed nonces are omitted)."""

    name: str
    user: int
    created_at: int
    expiration_at: int
    updated_tally: int
    updated_at: int | None
    additionals: dict[str, Any]

    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str
