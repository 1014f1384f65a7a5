"""Auth token generation and validation.

A token is `b64(IV).b64(ciphertext).b64(MAC)` where the ciphertext is the
AES-256-CBC encryption of `user_id|expires_at|issued_at|nonce` and the MAC
is HMAC-SHA256 over `IV || ciphertext`. It travels in an http-only cookie
next to a refresh cookie, while a third secret (the header nonce) is handed
out in a response header. The refresh and header secrets are rotated on
every successful validation, so a captured set of credentials works once.

Every rejection removes the client cookies and, once the principal is
known, the server-side session as well.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

from custom_api_auth.core import security
from custom_api_auth.core.settings import Settings, settings
from custom_api_auth.db.time import Clock, to_iso
from custom_api_auth.models import AuthSession
from custom_api_auth.schemas.common import ServiceResult
from custom_api_auth.services.cookie import CookieTransport
from custom_api_auth.services.session_store import SessionStore

logger = logging.getLogger(__name__)

TOKEN_PART_SEPARATOR: Final[str] = "."
PAYLOAD_FIELD_SEPARATOR: Final[str] = "|"
PAYLOAD_FIELD_COUNT: Final[int] = 4
MAC_LENGTH_BYTES: Final[int] = 32
TOKEN_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_]{1,64}$")
TIMESTAMP_PATTERN: Final[re.Pattern[str]] = re.compile(r"^-?[0-9]{1,19}$")
NONCE_HEX_PATTERN: Final[re.Pattern[str]] = re.compile(
    rf"^[0-9a-f]{{{security.NONCE_LENGTH_BYTES * 2}}}$"
)
# 9999-12-31T23:59:59Z, the last instant a cookie expiry date can carry.
MAX_EXPIRES_AT: Final[int] = 253_402_300_799


class TokenRejection(str, Enum):
    """Reasons a validation attempt ends in REJECTED."""

    INVALID_REQUEST = "invalid request"
    MISSING = "missing token"
    MALFORMED = "malformed"
    INTEGRITY = "integrity"
    CORRUPT = "corrupt"
    STRUCTURE = "structure"
    EXPIRED = "expired"
    STALE_AFTER_LOGOUT = "stale-after-logout"
    NO_SESSION = "no session"
    REPLAY = "replay"
    HEADER = "header"
    REFRESH_MISMATCH = "refresh-mismatch"
    TRANSPORT = "transport"


def rejection_message(reason: TokenRejection) -> str:
    return f"Token rejected ({reason.value})."


@dataclass(frozen=True)
class TokenClaims:
    """Authenticated principal and issuance metadata."""

    user_id: int
    issued_at: int
    expires_at: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "issued_at": to_iso(self.issued_at),
            "expires_at": to_iso(self.expires_at),
        }


@dataclass(frozen=True)
class _IssuedSecrets:
    nonce: bytes
    refresh_nonce: bytes
    header_nonce: bytes


class AuthTokenService:
    """Issue, validate and revoke cookie-borne auth tokens."""

    def __init__(
        self,
        sessions: SessionStore,
        config: Settings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.sessions = sessions
        self.config = config or settings
        self.clock = clock or sessions.clock
        self._keys = security.derive_keys(self.config.secret_key)

    # --- helpers -------------------------------------------------------------------

    def _hash(self, secret: bytes) -> str:
        return security.hash_secret(secret, self.config.session_hash_key)

    def _seal(self, plaintext: bytes) -> str:
        iv = security.random_bytes(security.IV_LENGTH_BYTES)
        ciphertext = security.encrypt(plaintext, self._keys.encryption_key, iv)
        mac = security.hmac_sha256(iv + ciphertext, self._keys.mac_key)
        return TOKEN_PART_SEPARATOR.join(
            security.b64encode(part) for part in (iv, ciphertext, mac)
        )

    @staticmethod
    def _valid_token_name(token_name: str | None) -> bool:
        return bool(token_name) and TOKEN_NAME_PATTERN.match(token_name) is not None

    def _deliver(
        self,
        transport: CookieTransport,
        token_name: str,
        expires_at: int,
        refresh_nonce: bytes,
        header_nonce: bytes,
        token: str | None = None,
    ) -> ServiceResult:
        """Write the token cookie (when given), the refresh cookie and the header."""
        if token is not None:
            result = transport.set(self.config.cookie_name(token_name), token, expires_at)
            if not result.ok:
                return result
        result = transport.set(
            self.config.refresh_cookie_name(token_name),
            security.b64encode(refresh_nonce),
            expires_at,
        )
        if not result.ok:
            return result
        return transport.set_header(self.config.token_header_name, header_nonce.hex())

    def _reject(
        self,
        reason: TokenRejection,
        token_name: str,
        transport: CookieTransport,
        user_id: int | None = None,
    ) -> ServiceResult:
        logger.info(
            "Auth token rejected: reason=%s token_name=%s user=%s",
            reason.value,
            token_name,
            user_id,
        )
        if self._valid_token_name(token_name):
            self.remove(token_name, transport, user_id)
        return ServiceResult.failure(rejection_message(reason), status=401)

    # --- public API ----------------------------------------------------------------

    def generate(
        self,
        token_name: str,
        user_id: int,
        transport: CookieTransport,
        ttl: int | None = None,
        additionals: dict[str, Any] | None = None,
    ) -> ServiceResult:
        """Issue a token for `user_id` and open its backing session.

        Returns:
            A result whose `data` is the `TokenClaims` of the new token.
        """
        if not self._valid_token_name(token_name) or not isinstance(user_id, int) or user_id <= 0:
            return ServiceResult.failure(
                "A positive `user_id` and a valid `token_name` are required to generate a token.",
                status=400,
            )

        issued_at = self.clock()
        expires_at = issued_at + int(self.config.token_expiration if ttl is None else ttl)
        if not 0 <= expires_at <= MAX_EXPIRES_AT:
            return ServiceResult.failure(
                "Token lifetime is out of range; the expiry cannot be represented.",
                status=400,
            )
        secrets_ = _IssuedSecrets(
            nonce=security.random_bytes(security.NONCE_LENGTH_BYTES),
            refresh_nonce=security.random_bytes(security.NONCE_LENGTH_BYTES),
            header_nonce=security.random_bytes(security.NONCE_LENGTH_BYTES),
        )

        plaintext = PAYLOAD_FIELD_SEPARATOR.join(
            (str(user_id), str(expires_at), str(issued_at), secrets_.nonce.hex())
        ).encode("ascii")
        try:
            token = self._seal(plaintext)
        except ValueError as err:
            logger.error("Auth token encryption failed for user=%s: %s", user_id, err)
            return ServiceResult.failure("Token encryption failed.")

        if self.config.token_over_https_only and not transport.is_secure():
            return ServiceResult.failure(
                "Token could not be stored as a cookie on the client, as "
                "`TOKEN_OVER_HTTPS_ONLY` is enabled and the request is not using HTTPS.",
                status=403,
            )

        session_result = self.sessions.generate(
            token_name,
            user_id,
            self._hash(secrets_.nonce),
            expires_at,
            additionals,
            refresh_nonce_hash=self._hash(secrets_.refresh_nonce),
            header_nonce_hash=self._hash(secrets_.header_nonce),
        )
        if not session_result.ok:
            return session_result

        delivered = self._deliver(
            transport,
            token_name,
            expires_at,
            secrets_.refresh_nonce,
            secrets_.header_nonce,
            token=token,
        )
        if not delivered.ok:
            # The orphaned session expires on its own or is evicted by the next generate.
            logger.warning("Auth token delivery failed for user=%s: %s", user_id, delivered.message)
            return delivered

        logger.info("Auth token generated: token_name=%s user=%s", token_name, user_id)
        return ServiceResult.success(
            "Token successfully generated.",
            TokenClaims(user_id, issued_at, expires_at),
        )

    def validate(
        self,
        token_name: str,
        transport: CookieTransport,
        logout_time: int | None = None,
        require_header_nonce: bool | None = None,
        logout_time_lookup: Callable[[int], int | None] | None = None,
    ) -> ServiceResult:
        """Authenticate the request carrying the `token_name` cookies.

        Args:
            token_name: Token namespace to validate.
            transport: Cookie/header access for the current request.
            logout_time: Epoch seconds of the principal's last logout, if known.
            require_header_nonce: Whether the header nonce must be presented.
                Defaults to `TOKEN_REQUIRE_HEADER_NONCE`. Skipping it leaves
                only the cookies binding the request to the session.
            logout_time_lookup: Resolves the last logout time once the user id
                is known, for callers that cannot supply `logout_time` upfront.

        Returns:
            On success a result whose `data` is the `TokenClaims`; on failure a
            401 result and all token state for the request has been revoked.
        """
        if not self._valid_token_name(token_name):
            return ServiceResult.failure(rejection_message(TokenRejection.INVALID_REQUEST), 400)
        if require_header_nonce is None:
            require_header_nonce = self.config.token_require_header_nonce

        token = transport.get(self.config.cookie_name(token_name))
        refresh_value = transport.get(self.config.refresh_cookie_name(token_name))
        if not token or not refresh_value:
            return self._reject(TokenRejection.MISSING, token_name, transport)

        parts = token.split(TOKEN_PART_SEPARATOR)
        if len(parts) != 3 or not all(parts):
            return self._reject(TokenRejection.MALFORMED, token_name, transport)
        try:
            iv, ciphertext, mac = (security.b64decode(part) for part in parts)
        except ValueError:
            return self._reject(TokenRejection.MALFORMED, token_name, transport)
        if len(iv) != security.IV_LENGTH_BYTES or len(mac) != MAC_LENGTH_BYTES:
            return self._reject(TokenRejection.MALFORMED, token_name, transport)

        expected_mac = security.hmac_sha256(iv + ciphertext, self._keys.mac_key)
        if not security.constant_time_eq(expected_mac, mac):
            return self._reject(TokenRejection.INTEGRITY, token_name, transport)

        plaintext = security.decrypt(ciphertext, self._keys.encryption_key, iv)
        if plaintext is None:
            return self._reject(TokenRejection.CORRUPT, token_name, transport)

        claims, nonce_hex = self._parse_payload(plaintext)
        if claims is None or nonce_hex is None:
            user_hint = claims.user_id if claims is not None else None
            return self._reject(TokenRejection.STRUCTURE, token_name, transport, user_hint)
        user_id = claims.user_id

        now = self.clock()
        if claims.expires_at <= now:
            return self._reject(TokenRejection.EXPIRED, token_name, transport, user_id)
        if logout_time is None and logout_time_lookup is not None:
            logout_time = logout_time_lookup(user_id)
        if logout_time is not None and claims.issued_at <= logout_time:
            return self._reject(TokenRejection.STALE_AFTER_LOGOUT, token_name, transport, user_id)

        session_result = self.sessions.get(token_name, user_id)
        if not session_result.ok:
            return self._reject(TokenRejection.NO_SESSION, token_name, transport, user_id)
        session_row: AuthSession = session_result.data

        if not security.constant_time_eq(self._hash(bytes.fromhex(nonce_hex)), session_row.nonce):
            return self._reject(TokenRejection.REPLAY, token_name, transport, user_id)

        if require_header_nonce and not self._header_matches(transport, session_row):
            return self._reject(TokenRejection.HEADER, token_name, transport, user_id)

        try:
            refresh_nonce = security.b64decode(refresh_value)
        except ValueError:
            return self._reject(TokenRejection.REFRESH_MISMATCH, token_name, transport, user_id)
        if not security.constant_time_eq(self._hash(refresh_nonce), session_row.refresh_nonce):
            return self._reject(TokenRejection.REFRESH_MISMATCH, token_name, transport, user_id)

        new_refresh = security.random_bytes(security.NONCE_LENGTH_BYTES)
        new_header = security.random_bytes(security.NONCE_LENGTH_BYTES)
        rotated = self.sessions.update(
            token_name,
            user_id,
            None,
            self._hash(new_refresh),
            self._hash(new_header),
            expected_tally=session_row.updated_tally,
        )
        if not rotated.ok:
            return self._reject(TokenRejection.REPLAY, token_name, transport, user_id)

        delivered = self._deliver(transport, token_name, claims.expires_at, new_refresh, new_header)
        if not delivered.ok:
            return self._reject(TokenRejection.TRANSPORT, token_name, transport, user_id)

        return ServiceResult.success("Token is valid.", claims)

    def remove(
        self,
        token_name: str,
        transport: CookieTransport,
        user_id: int | None = None,
    ) -> ServiceResult:
        """Remove both token cookies and, when `user_id` is given, the session.

        Every step runs; the first failure encountered is the one reported.
        """
        results = [
            transport.remove(self.config.cookie_name(token_name)),
            transport.remove(self.config.refresh_cookie_name(token_name)),
        ]
        if user_id is not None:
            results.append(self.sessions.delete(token_name, user_id))
        for result in results:
            if not result.ok:
                return result
        return ServiceResult.success(f"Token `{token_name}` removed successfully.")

    # --- parsing -------------------------------------------------------------------

    @staticmethod
    def _parse_payload(plaintext: bytes) -> tuple[TokenClaims | None, str | None]:
        """Split a decrypted payload into claims and the hex nonce.

        When only the user id can be read the claims carry it with zeroed
        timestamps and the nonce is None, so the caller can still revoke.
        """
        try:
            fields = plaintext.decode("ascii").split(PAYLOAD_FIELD_SEPARATOR)
        except UnicodeDecodeError:
            return None, None
        user_id = _parse_positive_int(fields[0])
        if user_id is None:
            return None, None
        partial = TokenClaims(user_id, 0, 0)
        if len(fields) != PAYLOAD_FIELD_COUNT:
            return partial, None
        expires_at = _parse_timestamp(fields[1])
        issued_at = _parse_timestamp(fields[2])
        nonce_hex = fields[3]
        if expires_at is None or issued_at is None or not NONCE_HEX_PATTERN.match(nonce_hex):
            return partial, None
        return TokenClaims(user_id, issued_at, expires_at), nonce_hex

    def _header_matches(self, transport: CookieTransport, session_row: AuthSession) -> bool:
        header_value = transport.get_header(self.config.token_header_name)
        if not header_value:
            return False
        try:
            header_nonce = bytes.fromhex(header_value)
        except ValueError:
            return False
        return security.constant_time_eq(self._hash(header_nonce), session_row.header_nonce)


def _parse_positive_int(value: str) -> int | None:
    if not value.isdigit():
        return None
    parsed = int(value)
    return parsed if parsed > 0 else None


def _parse_timestamp(value: str) -> int | None:
    return int(value) if TIMESTAMP_PATTERN.match(value) else None
