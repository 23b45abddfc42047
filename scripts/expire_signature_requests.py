#!/usr/bin/env python3
"""
Signature Request Expiry

Moves every sent or in-progress signature request whose expiry has passed to
``expired`` (open participants follow) and prints how many were changed.
Expired in-app notifications are purged in the same pass.
Meant to be run periodically from cron or a scheduler.

Reads the database URL the same way the API does (DATABASE_URL, then
POSTGRES_* env vars).

Usage:
  python scripts/expire_signature_requests.py [--json]
"""
from __future__ import annotations
import argparse
import json
import logging
import os

from dotenv import load_dotenv


def main() -> int:
    parser = argparse.ArgumentParser(description="Expire overdue signature requests")
    parser.add_argument('--json', action='store_true', help='print the result as JSON')
    args = parser.parse_args()

    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from insign.db.database import SessionLocal
    from insign.services.notification_service import NotificationService
    from insign.services.signing_service import expire_overdue_requests

    db = SessionLocal()
    try:
        expired = expire_overdue_requests(db)
        purged = NotificationService(db).cleanup_expired_notifications()
    finally:
        db.close()

    if args.json:
        print(json.dumps({'expired': expired, 'notifications_purged': purged}))
    else:
        print(f"Expired {expired} signature request(s), purged {purged} notification(s)")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
