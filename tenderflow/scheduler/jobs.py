"""Scheduled sweeps: expired tenders, deadline reminders, email retries."""

import logging

from tenderflow.config import settings
from tenderflow.scheduler.job_stats import job_stats
from tenderflow.services import get_services

logger = logging.getLogger(__name__)

job_stats.register_job("close_expired_tenders", "Close Expired Tenders")
job_stats.register_job("deadline_reminders", "Deadline Reminders")
job_stats.register_job("retry_outbox", "Retry Failed Emails")


async def close_expired_tenders_job():
    """
    Job: close open tenders whose deadline has passed.
    Runs every ``close_expired_interval_minutes``.
    """
    logger.info("Starting close expired tenders job")
    job_stats.start_run("close_expired_tenders")
    try:
        result = await get_services().tenders.close_expired_tenders()
        logger.info(f"Close expired tenders completed: {result['closed']} closed")
        job_stats.finish_run(
            "close_expired_tenders", processed=result["closed"], failed=len(result["errors"])
        )
    except Exception as e:
        logger.error(f"Close expired tenders job failed: {e}")
        job_stats.finish_run("close_expired_tenders", error=str(e))


async def deadline_reminders_job():
    """
    Job: send reminders for tenders whose deadline is ``reminder_days`` away.
    Runs every ``reminder_interval_hours``.
    """
    logger.info("Starting deadline reminders job")
    job_stats.start_run("deadline_reminders")
    try:
        result = await get_services().reminders.check_deadline_reminders(
            reminder_days=settings.reminder_days
        )
        logger.info(
            f"Deadline reminders completed: {result['checked']} checked, "
            f"{result['sent']} sent, {len(result['errors'])} errors"
        )
        job_stats.finish_run("deadline_reminders", processed=result["sent"], failed=len(result["errors"]))
    except Exception as e:
        logger.error(f"Deadline reminders job failed: {e}")
        job_stats.finish_run("deadline_reminders", error=str(e))


async def retry_outbox_job():
    """
    Job: re-send emails that failed earlier.
    Runs every ``outbox_interval_minutes``.
    """
    job_stats.start_run("retry_outbox")
    try:
        result = await get_services().outbox.retry_pending()
        job_stats.finish_run("retry_outbox", processed=result["delivered"], failed=result["dead"] + result["errors"])
    except Exception as e:
        logger.error(f"Outbox retry job failed: {e}")
        job_stats.finish_run("retry_outbox", error=str(e))
