"""APScheduler setup: runs the periodic message check for the signed-in user."""

import asyncio
import logging
import traceback

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from job_board.worker import MessageCheckWorker

logger = logging.getLogger("job_board.scheduler")

_scheduler: BackgroundScheduler | None = None

# Periodic background work cannot run more often than this
MIN_INTERVAL_MINUTES = 15


def _job_listener(event):
    """Log scheduler job events for debugging."""
    if event.exception:
        logger.error("Scheduled job %s FAILED: %s", event.job_id, event.exception)
        logger.error("Traceback: %s", event.traceback)
    elif hasattr(event, "job_id"):
        if event.code == EVENT_JOB_MISSED:
            logger.warning("Scheduled job %s MISSED its fire time", event.job_id)
        else:
            logger.info("Scheduled job %s executed successfully", event.job_id)


def init_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        return
    _scheduler = BackgroundScheduler()
    _scheduler.add_listener(_job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED)
    _scheduler.start()
    logger.info("APScheduler started")


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("APScheduler stopped")


def _job_id(user_id: int) -> str:
    return f"message_check_user_{user_id}"


def _run_message_check(worker: MessageCheckWorker, user_id: int) -> None:
    """Entry point on the scheduler's thread; each run gets its own event loop."""
    logger.info("Message check firing for user %d", user_id)
    try:
        asyncio.run(worker.run(user_id))
    except Exception:
        logger.error("Message check FAILED for user %d\n%s", user_id, traceback.format_exc())
        raise


def start_message_checks(worker: MessageCheckWorker, user_id: int, interval_minutes: int = MIN_INTERVAL_MINUTES) -> None:
    """Schedule (or reschedule) the periodic message check for ``user_id``."""
    global _scheduler
    if _scheduler is None:
        init_scheduler()

    interval = max(interval_minutes, MIN_INTERVAL_MINUTES)
    _scheduler.add_job(
        _run_message_check,
        trigger=IntervalTrigger(minutes=interval),
        args=[worker, user_id],
        id=_job_id(user_id),
        name=f"Message check for user {user_id}",
        misfire_grace_time=600,
        coalesce=True,
        max_instances=1,
        replace_existing=True,
    )
    logger.info("Scheduled message check for user %d every %d minutes", user_id, interval)


def stop_message_checks(user_id: int) -> None:
    if _scheduler is None:
        return
    if _scheduler.get_job(_job_id(user_id)):
        _scheduler.remove_job(_job_id(user_id))
        logger.info("Removed message check for user %d", user_id)


def get_next_run_time(user_id: int):
    """Return the next scheduled fire time for a user, or None."""
    if _scheduler is None:
        return None
    job = _scheduler.get_job(_job_id(user_id))
    if job:
        return job.next_run_time
    return None

