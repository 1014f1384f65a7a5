"""Tests for the table-creation and migration scripts."""

from __future__ import annotations

from sqlalchemy import create_engine, inspect

from custom_api_auth.core.settings import settings
from custom_api_auth.db.session import Base
from custom_api_auth.scripts import ensure_db, migrate


def test_ensure_db_creates_tables(tmp_path, monkeypatch, capsys) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'ensure.db'}")
    monkeypatch.setattr(
        ensure_db, "create_tables", lambda: Base.metadata.create_all(bind=engine)
    )
    monkeypatch.setattr(
        ensure_db, "drop_tables", lambda: Base.metadata.drop_all(bind=engine)
    )

    ensure_db.main(["--reset"])

    assert {"users", "auth_sessions"} <= set(inspect(engine).get_table_names())
    assert "Database ready at" in capsys.readouterr().out
    engine.dispose()


def test_migrate_upgrades_to_head(tmp_path, monkeypatch) -> None:
    url = f"sqlite:///{tmp_path / 'migrate.db'}"
    monkeypatch.setattr(settings, "database_url", url)

    migrate.run_upgrade_head()

    engine = create_engine(url)
    inspector = inspect(engine)
    assert {"users", "auth_sessions", "alembic_version"} <= set(inspector.get_table_names())
    columns = {column["name"] for column in inspector.get_columns("auth_sessions")}
    assert {"nonce", "refresh_nonce", "header_nonce", "updated_tally"} <= columns
    engine.dispose()
