#!/usr/bin/env python3
"""Delete event_queue and notified_events rows older than RETENTION_DAYS (default 7).
Dirty current-state rows left without pending events are acknowledged.
Run from backend: python scripts/purge_expired_events.py [--days N]
"""
import argparse
import dataclasses
import sys
from pathlib import Path

backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from parkwatch.config import settings
from parkwatch.db.session import SessionLocal
from parkwatch.services.batch_runner import BatchRunner, RunReport
from parkwatch.services.notifier_config import NotifierConfig


def main():
    parser = argparse.ArgumentParser(description="Purge notifier rows past the retention horizon")
    parser.add_argument("--days", type=int, default=None, help="Override RETENTION_DAYS")
    args = parser.parse_args()

    config = NotifierConfig.from_settings(settings)
    if args.days is not None:
        config = dataclasses.replace(config, retention_days=args.days)
    db = SessionLocal()
    try:
        report = RunReport(scope=config.notify_scope)
        purged = BatchRunner(db, config).purge(report)
        if report.errors:
            print(f"Error: {report.errors[0]['error']}", file=sys.stderr)
            sys.exit(1)
        print(f"Deleted {purged['events']} event_queue and {purged['ledger']} notified_events rows.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
