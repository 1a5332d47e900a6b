# buildapp/scheduler.py
"""
APScheduler jobs for the transitions nobody triggers by hand.

| job                    | every  | effect                                   |
|------------------------|--------|------------------------------------------|
| auto_complete_orders   | 5 min  | delivered -> completed after the deadline |
| detect_overdue_rentals | 1 h    | flags active rentals past end_date       |
| expire_offers          | 15 min | pending offers past expires_at -> expired |
| expire_rfqs            | 15 min | active RFQs past expires_at -> expired   |
| purge_trust_metrics    | 15 min | drops trust metrics past their TTL       |

Each task logs and swallows its own errors; a failing run is repeated on
the next tick.
"""

import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from buildapp.background_tasks.order_tasks import auto_complete_orders
from buildapp.background_tasks.rental_tasks import detect_overdue_rentals
from buildapp.background_tasks.rfq_tasks import expire_offers, expire_rfqs
from buildapp.background_tasks.trust_tasks import purge_trust_metrics

logger = logging.getLogger(__name__)

scheduler = None

JOBS = {
    "auto_complete_orders": (auto_complete_orders, IntervalTrigger(minutes=5)),
    "detect_overdue_rentals": (detect_overdue_rentals, IntervalTrigger(hours=1)),
    "expire_offers": (expire_offers, IntervalTrigger(minutes=15)),
    "expire_rfqs": (expire_rfqs, IntervalTrigger(minutes=15)),
    "purge_trust_metrics": (purge_trust_metrics, IntervalTrigger(minutes=15)),
}


def _log_job_event(event):
    if event.code == EVENT_JOB_MISSED:
        logger.warning(
            "Trade job %s missed its run at %s", event.job_id, event.scheduled_run_time
        )
        return

    exc = event.exception
    logger.error(
        "Trade job %s raised: %s",
        event.job_id, exc,
        exc_info=(type(exc), exc, None) if exc else None,
    )
    if event.traceback:
        logger.error("Traceback for job %s:\n%s", event.job_id, event.traceback)


def init_scheduler(start: bool = True):
    """Register the trade jobs. Repeated calls return the existing scheduler."""
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already initialized")
        return scheduler

    scheduler = BackgroundScheduler(
        timezone="UTC",
        job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 60},
    )
    for job_id, (func, trigger) in JOBS.items():
        scheduler.add_job(func, trigger=trigger, id=job_id, name=job_id, replace_existing=True)
        logger.info(f"Registered trade job {job_id} ({trigger})")

    scheduler.add_listener(_log_job_event, EVENT_JOB_ERROR | EVENT_JOB_MISSED)

    if start:
        scheduler.start()
        logger.info("Trade scheduler started")
    return scheduler


def shutdown_scheduler():
    global scheduler

    if scheduler is None:
        return
    if scheduler.running:
        scheduler.shutdown(wait=True)
    scheduler = None
    logger.info("Trade scheduler stopped")


def get_scheduler_status():
    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        next_run = getattr(job, "next_run_time", None)
        jobs.append({
            "id": job.id,
            "next_run_time": next_run.isoformat() if next_run else None,
            "trigger": str(job.trigger),
        })
    return {"status": "running" if scheduler.running else "stopped", "jobs": jobs}
