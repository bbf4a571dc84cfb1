"""
Background reminder scheduler using APScheduler.

Sends the 24h pickup reminder for confirmed bookings whose pickup is
less than a day away and that have not been reminded yet.
"""
import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from database import SessionLocal
from db_service import get_bookings_needing_reminder, mark_reminder_sent, to_booking_payload
from email_service import send_24h_reminder
from config import is_email_enabled, local_now

logger = logging.getLogger(__name__)

# Scheduler instance
scheduler = BackgroundScheduler()

# Configuration
REMINDER_WINDOW_HOURS = 24
CHECK_INTERVAL_MINUTES = 15
BATCH_SIZE = 20


def get_db() -> Session:
    """Get a database session."""
    return SessionLocal()


def process_pending_reminders(now: Optional[datetime] = None) -> int:
    """
    Send reminders that are due.

    Returns:
        Number of reminders sent
    """
    if not is_email_enabled():
        return 0

    now = now or local_now()
    sent = 0

    db = get_db()
    try:
        due = get_bookings_needing_reminder(db, now, REMINDER_WINDOW_HOURS)[:BATCH_SIZE]

        for booking in due:
            logger.info(f"Sending 24h reminder for {booking.reference}")

            if send_24h_reminder(to_booking_payload(booking)):
                mark_reminder_sent(db, booking)
                sent += 1
            else:
                logger.error(f"Failed to send 24h reminder for {booking.reference}")

    except Exception as e:
        logger.error(f"Error processing reminders: {str(e)}")
        db.rollback()
    finally:
        db.close()

    return sent


def start_scheduler():
    """Start the reminder scheduler."""
    if scheduler.running:
        logger.info("Scheduler already running")
        return

    scheduler.add_job(
        process_pending_reminders,
        trigger=IntervalTrigger(minutes=CHECK_INTERVAL_MINUTES),
        id="process_reminders",
        name="Send 24h pickup reminders",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(f"Reminder scheduler started - checking every {CHECK_INTERVAL_MINUTES} minutes")


def stop_scheduler():
    """Stop the reminder scheduler."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Reminder scheduler stopped")
