import asyncio
from celery import shared_task
from celery.utils.log import get_task_logger
from hotel_pricing.config import get_settings
from hotel_pricing.database import SessionLocal
from hotel_pricing.services.approvals import ApprovalService
from hotel_pricing.services.event_queue import PricingEventQueue
from hotel_pricing.services.notification import OperatorNotifier

logger = get_task_logger(__name__)
settings = get_settings()


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def process_pricing_events(self, batch_size: int = None):
    db = SessionLocal()
    notifier = OperatorNotifier()

    try:
        queue = PricingEventQueue(db, notifier=notifier)
        released = queue.release_stale_claims()

        async def run_batch():
            try:
                return await queue.process_batch(batch_size or settings.event_batch_size)
            finally:
                await notifier.close()

        result = asyncio.run(run_batch())
        result["claims_released"] = released
        logger.info(f"Processed {result['events_processed']} pricing events ({result['errors']} errors)")
        return result

    except Exception as e:
        logger.exception("Pricing event batch failed")
        raise self.retry(exc=e)

    finally:
        db.close()


@shared_task
def sweep_expired_approvals():
    db = SessionLocal()

    try:
        expired = ApprovalService(db).sweep_expired()
        logger.info(f"Expired {expired} unanswered price approvals")
        return expired

    finally:
        db.close()


@shared_task
def enqueue_daily_time_triggers():
    db = SessionLocal()

    try:
        count = PricingEventQueue(db).enqueue_daily_repricing()
        logger.info(f"Queued daily repricing for {count} rooms")
        return count

    finally:
        db.close()
