#!/usr/bin/env python3
"""Delete DID challenges older than the housekeeping window (cron-friendly)."""
import argparse
from datetime import timedelta

from didauth.core.config import settings
from didauth.core.db import SessionLocal
from didauth.domains.did_auth.store import SqlChallengeStore


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--older-than",
        type=int,
        default=settings.purge_window_seconds,
        help="age in seconds (default: PURGE_WINDOW_SECONDS)",
    )
    args = parser.parse_args()

    db = SessionLocal()
    try:
        removed = SqlChallengeStore(db).purge_older_than(timedelta(seconds=args.older_than))
    finally:
        db.close()
    print(f"✓ did_auth_requests: {removed} rows deleted")


if __name__ == "__main__":
    main()
