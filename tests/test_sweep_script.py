"""Tests for the expired-session sweep job."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from custom_api_auth.models import AuthSession
from custom_api_auth.schemas.common import ServiceResult
from custom_api_auth.scripts import sweep_sessions as sweep_module
from custom_api_auth.services.session_store import SessionStore


def _add_session(db_session, name: str, expiration_at: int) -> None:
    db_session.add(
        AuthSession(
            name=name,
            user=1,
            nonce="n",
            refresh_nonce="r",
            header_nonce="h",
            created_at=0,
            expiration_at=expiration_at,
            updated_tally=0,
            additionals={},
        )
    )
    db_session.commit()


def test_sweep_sessions_deletes_expired(db_session, flags) -> None:
    _add_session(db_session, "old", 1)
    _add_session(db_session, "live", 2**40)

    assert sweep_module.sweep_sessions(db_session, flags) == 1
    remaining = db_session.execute(select(func.count()).select_from(AuthSession)).scalar_one()
    assert remaining == 1


def test_sweep_sessions_respects_interval_unless_forced(db_session, flags) -> None:
    assert sweep_module.sweep_sessions(db_session, flags) == 0
    _add_session(db_session, "old", 1)

    assert sweep_module.sweep_sessions(db_session, flags) == 0
    assert sweep_module.sweep_sessions(db_session, flags, force=True) == 1


def test_sweep_sessions_raises_on_store_failure(db_session, flags, monkeypatch) -> None:
    monkeypatch.setattr(
        SessionStore,
        "sweep_expired",
        lambda self, force=False: ServiceResult.failure("boom"),
    )
    with pytest.raises(RuntimeError, match="boom"):
        sweep_module.sweep_sessions(db_session, flags)


def test_main_reports_deleted_count(db_session, flags, monkeypatch, capsys) -> None:
    _add_session(db_session, "old", 1)
    monkeypatch.setattr(sweep_module, "SessionLocal", lambda: db_session)
    monkeypatch.setattr(sweep_module, "get_flag_store", lambda: flags)

    assert sweep_module.main(["--force"]) == 0
    assert "Removed 1 expired sessions" in capsys.readouterr().out


def test_main_returns_error_code_on_failure(db_session, flags, monkeypatch) -> None:
    monkeypatch.setattr(sweep_module, "SessionLocal", lambda: db_session)
    monkeypatch.setattr(sweep_module, "get_flag_store", lambda: flags)
    monkeypatch.setattr(
        SessionStore,
        "sweep_expired",
        lambda self, force=False: ServiceResult.failure("boom"),
    )
    assert sweep_module.main([]) == 1
