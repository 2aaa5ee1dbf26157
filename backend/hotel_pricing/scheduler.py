"""
APScheduler setup for the pricing engine.

Every job opens its own session; nothing is shared between runs except the
database. The same queue and sweep work is available as Celery tasks for
worker deployments (see celery_app.tasks.pricing).
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.memory import MemoryJobStore

from hotel_pricing.database import SessionLocal
from hotel_pricing.services.approvals import ApprovalService
from hotel_pricing.services.event_queue import PricingEventQueue
from hotel_pricing.services.monitor import PricingMonitor
from hotel_pricing.services.notification import get_global_notifier
from hotel_pricing.services.system_metrics import get_system_metrics_provider
from hotel_pricing.config import get_settings

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None

settings = get_settings()


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the global scheduler instance."""
    global scheduler
    if scheduler is None:
        logger.info(f"Scheduler using timezone: {settings.hotel_timezone}")

        scheduler = AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            timezone=settings.hotel_timezone
        )

        _setup_scheduled_jobs()

    return scheduler


def _setup_scheduled_jobs():
    scheduler.add_job(
        process_pricing_events,
        trigger=IntervalTrigger(minutes=settings.event_processing_interval_minutes),
        id='process_pricing_events',
        name=f'Process Pricing Events (every {settings.event_processing_interval_minutes} min)',
        replace_existing=True,
        max_instances=1,
    )

    scheduler.add_job(
        run_monitoring_pass,
        trigger=IntervalTrigger(seconds=settings.monitor_interval_seconds),
        id='pricing_monitor',
        name=f'Pricing Monitor (every {settings.monitor_interval_seconds}s)',
        replace_existing=True,
        max_instances=1,
    )

    scheduler.add_job(
        sweep_expired_approvals,
        trigger=IntervalTrigger(minutes=5),
        id='sweep_expired_approvals',
        name='Expire Unanswered Approvals (every 5 min)',
        replace_existing=True,
        max_instances=1,
    )

    # Just after midnight hotel time, so the new day gets fresh prices
    scheduler.add_job(
        enqueue_daily_time_triggers,
        trigger=CronTrigger(hour=0, minute=5),
        id='daily_time_triggers',
        name='Daily Repricing Triggers (00:05)',
        replace_existing=True,
        max_instances=1,
    )

    logger.info("Scheduled jobs configured:")
    logger.info(f"  - Pricing events: Every {settings.event_processing_interval_minutes} minutes")
    logger.info(f"  - Monitoring pass: Every {settings.monitor_interval_seconds} seconds")
    logger.info("  - Approval sweep: Every 5 minutes")
    logger.info("  - Daily repricing: 00:05 hotel time")


async def process_pricing_events() -> dict:
    """Release stale claims, then work one batch of the event queue."""
    db = SessionLocal()
    try:
        queue = PricingEventQueue(db, notifier=get_global_notifier())
        released = queue.release_stale_claims()
        result = await queue.process_batch(settings.event_batch_size)
        result["claims_released"] = released
        return result
    except Exception as e:
        logger.error(f"❌ Error processing pricing events: {e}")
        return {"events_processed": 0, "errors": 0, "error": str(e)}
    finally:
        db.close()


async def run_monitoring_pass() -> dict:
    db = SessionLocal()
    try:
        monitor = PricingMonitor(
            db,
            notifier=get_global_notifier(),
            system_metrics=get_system_metrics_provider(),
        )
        return await monitor.run_monitoring_pass()
    except Exception as e:
        logger.error(f"❌ Monitoring pass failed: {e}")
        return {"error": str(e)}
    finally:
        db.close()


async def sweep_expired_approvals() -> int:
    db = SessionLocal()
    try:
        return ApprovalService(db, notifier=get_global_notifier()).sweep_expired()
    except Exception as e:
        logger.error(f"❌ Approval sweep failed: {e}")
        return 0
    finally:
        db.close()


async def enqueue_daily_time_triggers() -> int:
    """Queue a time_trigger event for every room with auto-pricing on."""
    db = SessionLocal()
    try:
        count = PricingEventQueue(db).enqueue_daily_repricing()
        logger.info(f"Queued daily repricing for {count} room(s)")
        return count
    except Exception as e:
        logger.error(f"❌ Failed to queue daily repricing: {e}")
        return 0
    finally:
        db.close()


def start_scheduler():
    """Start the pricing jobs. Called from the FastAPI lifespan."""
    pricing_scheduler = get_scheduler()
    if pricing_scheduler.running:
        logger.warning("Pricing scheduler already running")
        return

    pricing_scheduler.start()
    logger.info(f"Pricing scheduler started with {len(pricing_scheduler.get_jobs())} job(s)")
    for job in pricing_scheduler.get_jobs():
        logger.info(f"  {job.id}: next run {job.next_run_time}")


def stop_scheduler():
    """Stop the pricing jobs. Called from the FastAPI lifespan."""
    global scheduler
    if scheduler is None or not scheduler.running:
        return
    scheduler.shutdown(wait=False)
    scheduler = None
    logger.info("Pricing scheduler stopped")


def get_scheduler_status() -> dict:
    """Running flag, jobs and the soonest next run, for GET /health."""
    if scheduler is None or not scheduler.running:
        return {"running": False, "jobs": [], "next_run": None}

    jobs = [
        {
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
        }
        for job in scheduler.get_jobs()
    ]
    upcoming = [job.next_run_time for job in scheduler.get_jobs() if job.next_run_time]

    return {
        "running": True,
        "jobs": jobs,
        "next_run": min(upcoming).isoformat() if upcoming else None,
    }
