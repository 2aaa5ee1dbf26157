from celery import Celery
from celery.schedules import crontab
from hotel_pricing.config import get_settings

settings = get_settings()

app = Celery(
    "hotel_pricing",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["celery_app.tasks.pricing"]
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.hotel_timezone,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,
    worker_prefetch_multiplier=1,
)

app.conf.beat_schedule = {
    "process-pricing-events": {
        "task": "celery_app.tasks.pricing.process_pricing_events",
        "schedule": settings.event_processing_interval_minutes * 60,
    },
    "sweep-expired-approvals": {
        "task": "celery_app.tasks.pricing.sweep_expired_approvals",
        "schedule": 300,
    },
    "daily-repricing": {
        "task": "celery_app.tasks.pricing.enqueue_daily_time_triggers",
        "schedule": crontab(hour=0, minute=5),
    },
}
