from datetime import datetime
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from zoneinfo import ZoneInfo

from ..config import get_settings
from ..db.session import SessionLocal
from ..services import booking_service, credit_ledger, payment_service

logger = logging.getLogger(__name__)


def cleanup_pending() -> None:
    with SessionLocal() as db:
        cancelled = booking_service.cancel_stale_pending(db)
        for booking_id in cancelled:
            payment_service.cancel_pending_payments(db, booking_id)
        if cancelled:
            logger.info("Cancelled unpaid bookings", extra={"count": len(cancelled)})


def expire_credit_cycles() -> None:
    today = datetime.now(ZoneInfo(get_settings().timezone)).date()
    with SessionLocal() as db:
        credit_ledger.expire_cycles(db, today)


def get_scheduler() -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone=get_settings().timezone)
    scheduler.add_job(cleanup_pending, "interval", minutes=1)
    scheduler.add_job(expire_credit_cycles, "cron", hour=0, minute=5)
    return scheduler
