"""Delete retired refresh token records whose expiry has long passed."""

from __future__ import annotations

import argparse
import datetime as dt
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(BASE_DIR))

from sqlalchemy.orm import Session  # noqa: E402

from herit_auth.core.config import settings  # noqa: E402
from herit_auth.core.logging import setup_logging  # noqa: E402
from herit_auth.db.session import SessionLocal  # noqa: E402
from herit_auth.services.session_store import SessionStore  # noqa: E402


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Purge expired, inactive refresh token records")
    parser.add_argument(
        "--older-than-days",
        type=int,
        default=7,
        help="Only delete records that expired at least this many days ago",
    )
    return parser.parse_args(argv)


def purge(db: Session, *, older_than_days: int) -> int:
    store = SessionStore(db, leeway_seconds=settings.TOKEN_CLOCK_SKEW_SECONDS)
    return store.purge_expired(older_than=dt.timedelta(days=max(older_than_days, 0)))


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(settings.LOG_LEVEL)
    db = SessionLocal()
    try:
        deleted = purge(db, older_than_days=args.older_than_days)
    finally:
        db.close()
    print(f"Purged {deleted} refresh token record(s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
