# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from http.cookies import SimpleCookie
from typing import Any

os.environ.setdefault("SECRET_KEY", "test-master-secret-with-enough-entropy")
os.environ.setdefault("SESSION_HASH_KEY", "test-session-hash-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PASSWORD_TIME_COST", "1")
os.environ.setdefault("PASSWORD_MEMORY_COST", "1024")
os.environ.setdefault("PASSWORD_PARALLELISM", "1")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.requests import Request
from starlette.responses import Response

from custom_api_auth.api.v1.dependencies import get_flag_store_dep
from custom_api_auth.core.settings import Settings
from custom_api_auth.db.session import Base
from custom_api_auth.db.session import get_db as app_get_session
from custom_api_auth.main import app as fastapi_app
from custom_api_auth.services.auth_token import AuthTokenService
from custom_api_auth.services.cookie import CookieTransport
from custom_api_auth.services.flags import FlagStore, reset_local_cache
from custom_api_auth.services.session_store import SessionStore

TEST_DB_URL = "sqlite://"
START_TIME = 1_000


class FakeClock:
    """Controllable wall clock returning whole epoch seconds."""

    def __init__(self, now: int = START_TIME) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def parse_set_cookies(header_values: list[str]) -> dict[str, str]:
    """Map cookie name to value for every Set-Cookie header ('' when removed)."""
    cookies: dict[str, str] = {}
    for header in header_values:
        jar: SimpleCookie = SimpleCookie()
        jar.load(header)
        for name, morsel in jar.items():
            cookies[name] = "" if morsel["max-age"] == "0" else morsel.value
    return cookies


def make_transport(
    config: Settings,
    cookies: dict[str, str] | None = None,
    headers: dict[str, str] | None = None,
    scheme: str = "http",
    with_response: bool = True,
) -> CookieTransport:
    """Build a transport over a synthetic request and a fresh response."""
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    if cookies:
        cookie_header = "; ".join(f"{name}={value}" for name, value in cookies.items())
        raw_headers.append((b"cookie", cookie_header.encode()))
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "root_path": "",
        "query_string": b"",
        "headers": raw_headers,
        "scheme": scheme,
        "server": ("test", 443 if scheme == "https" else 80),
    }
    return CookieTransport(Request(scope), Response() if with_response else None, config)


class ClientState:
    """Browser-like holder of the cookies and header nonce a client would keep."""

    def __init__(self, config: Settings) -> None:
        self.config = config
        self.cookies: dict[str, str] = {}
        self.header_nonce: str | None = None

    def transport(self, send_header: bool = True, scheme: str = "http") -> CookieTransport:
        headers = {}
        if send_header and self.header_nonce:
            headers[self.config.token_header_name] = self.header_nonce
        return make_transport(self.config, dict(self.cookies), headers, scheme=scheme)

    def absorb(self, transport: CookieTransport) -> None:
        """Apply the Set-Cookie and nonce headers written to `transport`'s response."""
        assert transport.response is not None
        for name, value in parse_set_cookies(
            transport.response.headers.getlist("set-cookie")
        ).items():
            if value:
                self.cookies[name] = value
            else:
                self.cookies.pop(name, None)
        header = transport.response.headers.get(self.config.token_header_name)
        if header:
            self.header_nonce = header

    def copy(self) -> ClientState:
        clone = ClientState(self.config)
        clone.cookies = dict(self.cookies)
        clone.header_nonce = self.header_nonce
        return clone


@pytest.fixture()
def test_settings() -> Settings:
    """Settings aligned with the test environment, HTTPS enforcement off."""
    return Settings(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def clear_flags() -> Iterator[None]:
    reset_local_cache()
    yield
    reset_local_cache()


@pytest.fixture()
def flags() -> FlagStore:
    return FlagStore(redis_client=None)


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def session_store(
    db_session: Session, flags: FlagStore, clock: FakeClock, test_settings: Settings
) -> SessionStore:
    return SessionStore(db_session, flags, clock=clock, config=test_settings)


@pytest.fixture()
def auth_service(
    session_store: SessionStore, test_settings: Settings, clock: FakeClock
) -> AuthTokenService:
    return AuthTokenService(session_store, config=test_settings, clock=clock)


@pytest.fixture()
def client_state(test_settings: Settings) -> Callable[[], ClientState]:
    return lambda: ClientState(test_settings)


@pytest.fixture()
def transport_factory(test_settings: Settings) -> Callable[..., CookieTransport]:
    def _factory(**kwargs: Any) -> CookieTransport:
        return make_transport(test_settings, **kwargs)

    return _factory


@pytest.fixture()
def set_cookies() -> Callable[[list[str]], dict[str, str]]:
    return parse_set_cookies


@pytest.fixture()
def app(db_session: Session) -> Iterator[FastAPI]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    fastapi_app.dependency_overrides[app_get_session] = _get_session_override
    fastapi_app.dependency_overrides[get_flag_store_dep] = lambda: FlagStore(redis_client=None)
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client
