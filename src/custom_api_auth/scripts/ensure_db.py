# src/custom_api_auth/scripts/ensure_db.py
"""Create the auth tables on the configured database."""

from __future__ import annotations

import argparse

from custom_api_auth.db.session import create_tables, drop_tables, engine


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Create (or recreate) the auth tables.")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first")
    args = parser.parse_args(argv)

    if args.reset:
        drop_tables()
    create_tables()
    print(f"Database ready at {engine.url.render_as_string(hide_password=True)}")


if __name__ == "__main__":
    main()
