"""
Scheduler entry point — periodic ledger jobs.

  - BrokerCheck reconciliation: weekly, Sunday 02:00
  - Partner webhook retry sweep: hourly

Run as its own process (`python scheduler.py`). The reconciliation lock in
Redis keeps this from overlapping with a manual run from the API.
"""
import logging

from apscheduler.schedulers.blocking import BlockingScheduler

from ledger.extensions import redis_client, log_missing_configuration
from ledger.logging_config import configure_logging
from ledger.services.circuit_breaker import init_breakers
from ledger.services.placements import retry_pending_notifications
from ledger.services.reconciliation import run_reconciliation

logger = logging.getLogger('scheduler')


def build_scheduler():
    scheduler = BlockingScheduler(timezone='UTC')

    scheduler.add_job(
        run_reconciliation, 'cron', day_of_week='sun', hour=2,
        id='brokercheck_reconciliation', max_instances=1, coalesce=True,
    )
    scheduler.add_job(
        retry_pending_notifications, 'interval', hours=1,
        id='placement_notification_retry', max_instances=1, coalesce=True,
    )
    return scheduler


def main():
    configure_logging()
    init_breakers(redis_client)
    log_missing_configuration()

    scheduler = build_scheduler()
    logger.info("Starting scheduler with jobs: %s", [job.id for job in scheduler.get_jobs()])
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        pass


if __name__ == '__main__':
    main()
