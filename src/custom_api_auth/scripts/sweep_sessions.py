# src/custom_api_auth/scripts/sweep_sessions.py
"""
Cron job removing expired auth sessions.

Request handling already runs the sweep at most once per
DATABASE_REFRESH_INTERVAL; this script lets operators run it on a schedule
or on demand (`--force` ignores the interval flag).
"""

from __future__ import annotations

import argparse
import logging
import sys

from sqlalchemy.orm import Session

from custom_api_auth.core.logging import configure_logging
from custom_api_auth.db.session import SessionLocal
from custom_api_auth.services.flags import FlagStore, get_flag_store
from custom_api_auth.services.session_store import SessionStore

logger = logging.getLogger(__name__)


def sweep_sessions(db: Session, flags: FlagStore, force: bool = False) -> int:
    """Run the sweep and return the number of deleted sessions.

    Raises:
        RuntimeError: If the store reports a failure.
    """
    result = SessionStore(db, flags).sweep_expired(force=force)
    if not result.ok:
        raise RuntimeError(result.message)
    if result.data["skipped"]:
        logger.info("Sweep skipped: ran within the last refresh interval")
    return int(result.data["deleted"])


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Delete expired auth sessions.")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run even if a sweep already ran within DATABASE_REFRESH_INTERVAL",
    )
    args = parser.parse_args(argv)

    configure_logging()
    db = SessionLocal()
    try:
        deleted = sweep_sessions(db, get_flag_store(), force=args.force)
    except RuntimeError as err:
        logger.error("Session sweep failed: %s", err)
        return 1
    finally:
        db.close()
    print(f"Removed {deleted} expired sessions")
    return 0


if __name__ == "__main__":
    sys.exit(main())
