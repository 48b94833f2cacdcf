
import logging
from datetime import datetime

from apscheduler.schedulers.blocking import BlockingScheduler

from calsync.config import load_settings
from calsync.errors import SetupError
from calsync.runner import run_once, setup_logging

logger = logging.getLogger('schedule')


def scheduled_sync(settings):
    # Triggered by APScheduler; a failed run is logged and retried on the next tick.
    logger.info(f"[Scheduler] Sync triggered at {datetime.now().isoformat()}")
    try:
        run_once(settings)
    except SetupError as e:
        logger.error(f"[Scheduler] Sync aborted: {e}")


if __name__ == "__main__":
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_path, settings.log_filename)
    scheduler = BlockingScheduler()
    scheduler.add_job(scheduled_sync, 'interval', args=[settings],
                      minutes=settings.sync_interval_minutes,
                      next_run_time=datetime.now(), max_instances=1, coalesce=True)
    logger.info(f"Scheduler started. Sync every {settings.sync_interval_minutes} minutes.")
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler shutdown.")
