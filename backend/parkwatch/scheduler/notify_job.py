"""
Scheduled notifier tick: every NOTIFY_INTERVAL_SECONDS run one complete notifier cycle in its
own session. Overlapping ticks are prevented by APScheduler's max_instances=1 on the job;
the ledger's unique uniq_key is the backstop if two processes ever run at once.
"""
import logging

from parkwatch.config import settings
from parkwatch.core.errors import ConfigurationError
from parkwatch.db.session import SessionLocal
from parkwatch.services.batch_runner import BatchRunner
from parkwatch.services.notifier_config import NotifierConfig

logger = logging.getLogger(__name__)


def run_notify_job() -> None:
    config = NotifierConfig.from_settings(settings)
    db = SessionLocal()
    try:
        report = BatchRunner(db, config).run()
        if report.errors:
            logger.warning("Notify job: %s item error(s); first: %s", len(report.errors), report.errors[0])
    except ConfigurationError as e:
        logger.warning("Notify job skipped: %s", e)
    except Exception as e:
        logger.exception("Notify job failed: %s", e)
        db.rollback()
    finally:
        db.close()
