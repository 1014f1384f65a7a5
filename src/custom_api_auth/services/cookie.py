"""Cookie and header transport for auth token material.

Pure transport: reads values from the incoming request and writes them to
the outgoing response with the configured security flags.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from starlette.requests import Request
from starlette.responses import Response

from custom_api_auth.core.settings import Settings, settings
from custom_api_auth.schemas.common import ServiceResult

logger = logging.getLogger(__name__)


class CookieTransport:
    """Get, set and remove cookies and the nonce header for one request."""

    def __init__(
        self,
        request: Request,
        response: Response | None,
        config: Settings | None = None,
    ) -> None:
        self.request = request
        self.response = response
        self.config = config or settings

    def is_secure(self) -> bool:
        """Return True if the request reached us over HTTPS."""
        if self.request.url.scheme == "https":
            return True
        forwarded = self.request.headers.get("x-forwarded-proto", "")
        return forwarded.split(",")[0].strip().lower() == "https"

    def get(self, name: str) -> str | None:
        value = self.request.cookies.get(name)
        return value or None

    def get_header(self, name: str) -> str | None:
        value = self.request.headers.get(name)
        return value.strip() if value else None

    def set(self, name: str, value: str, expires_at: int) -> ServiceResult:
        """Set cookie `name` to expire at the absolute epoch time `expires_at`."""
        if self.response is None:
            return ServiceResult.failure(f"Failed to set cookie `{name}`: response already sent.")
        try:
            self.response.set_cookie(
                key=name,
                value=value,
                expires=datetime.fromtimestamp(expires_at, UTC),
                path=self.config.token_cookie_path,
                domain=self.config.token_cookie_domain,
                secure=self.config.token_over_https_only,
                httponly=self.config.token_cookie_http_only,
                samesite=self.config.token_cookie_same_site,
            )
        except (ValueError, OverflowError, OSError) as err:
            logger.warning("Failed to set cookie %s: %s", name, err)
            return ServiceResult.failure(f"Failed to set cookie `{name}`.")
        return ServiceResult.success(f"Cookie `{name}` set successfully.")

    def remove(self, name: str) -> ServiceResult:
        """Expire cookie `name` on the client."""
        if self.response is None:
            return ServiceResult.failure(f"Failed to remove cookie `{name}`: response already sent.")
        self.response.delete_cookie(
            key=name,
            path=self.config.token_cookie_path,
            domain=self.config.token_cookie_domain,
            secure=self.config.token_over_https_only,
            httponly=self.config.token_cookie_http_only,
            samesite=self.config.token_cookie_same_site,
        )
        return ServiceResult.success(f"Cookie `{name}` removed successfully.")

    def set_header(self, name: str, value: str) -> ServiceResult:
        if self.response is None:
            return ServiceResult.failure(f"Failed to set header `{name}`: response already sent.")
        self.response.headers[name] = value
        return ServiceResult.success(f"Header `{name}` set successfully.")
