from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from hotel_pricing.api import pricing, events, approvals, monitoring, notifications, health
from hotel_pricing.scheduler import start_scheduler, stop_scheduler
from hotel_pricing.services.notification import get_global_notifier, shutdown_notifier
from hotel_pricing.config import get_settings
from hotel_pricing.database import engine, Base, SessionLocal
from hotel_pricing.models import HotelSettings

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def _send_startup_notification():
    db = SessionLocal()
    try:
        hotel = HotelSettings.get(db)
        phone = hotel.whatsapp_number if hotel else None
    finally:
        db.close()
    await get_global_notifier().send_startup_notification(phone)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting hotel pricing engine")

    if settings.database_url.startswith("sqlite"):
        logger.info("SQLite detected - creating tables if needed")
        Base.metadata.create_all(bind=engine)

    try:
        if settings.scheduler_enabled:
            start_scheduler()
            logger.info("✅ APScheduler started")
        else:
            logger.info("Scheduler disabled (SCHEDULER_ENABLED=false)")

        await _send_startup_notification()

    except Exception as e:
        logger.error(f"❌ Startup failed: {e}")

    yield

    logger.info("🛑 Shutting down hotel pricing engine")

    try:
        stop_scheduler()
        await shutdown_notifier()
        logger.info("✅ Scheduler and notifier shut down")

    except Exception as e:
        logger.error(f"❌ Shutdown error: {e}")


app = FastAPI(
    title="Hotel Pricing Engine",
    description="Dynamic room pricing, approval gate and pricing monitor",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)

app.include_router(pricing.router, tags=["pricing"])
app.include_router(events.router, prefix="/events", tags=["events"])
app.include_router(approvals.router, prefix="/approvals", tags=["approvals"])
app.include_router(monitoring.router, prefix="/monitoring", tags=["monitoring"])
app.include_router(notifications.router, prefix="/api", tags=["notifications"])
app.include_router(health.router, tags=["health"])


@app.get("/ping")
async def ping():
    """Simple ping endpoint for health checks."""
    return {"status": "ok"}
