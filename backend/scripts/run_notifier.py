#!/usr/bin/env python3
"""Run one notifier cycle (detect, quiet-hours gate, deliver, purge) and print the report JSON.
Run from backend: python scripts/run_notifier.py [--override-quiet-hours] [--batch-size N] [--scope all]
Exit status: 0 on success, 2 on configuration failure, 1 on any other error.
"""
import argparse
import json
import logging
import sys
from pathlib import Path

backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from parkwatch.config import settings
from parkwatch.core.constants import SCOPES
from parkwatch.core.errors import ConfigurationError
from parkwatch.db.session import SessionLocal
from parkwatch.services.batch_runner import BatchRunner
from parkwatch.services.notifier_config import NotifierConfig


def main():
    parser = argparse.ArgumentParser(description="Run the attraction change notifier once")
    parser.add_argument("--override-quiet-hours", action="store_true", help="Deliver even outside the delivery window")
    parser.add_argument("--batch-size", type=int, default=None, help="Max pending events to process this run")
    parser.add_argument("--scope", choices=SCOPES, default=None, help="Default audience scope for principals without a rule")
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = NotifierConfig.from_settings(settings)
    db = SessionLocal()
    try:
        report = BatchRunner(db, config).run(
            override_quiet_hours=args.override_quiet_hours,
            batch_size=args.batch_size,
            scope=args.scope,
        )
        print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
    except ConfigurationError as e:
        print(json.dumps({"ok": False, "error": "configuration", "problems": e.problems}, indent=2), file=sys.stderr)
        sys.exit(2)
    except Exception as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
