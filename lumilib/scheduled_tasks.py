"""
Scheduled background tasks for the library system.

Tasks include:
- Sending due date reminders (daily)
- Persisting overdue status and sending overdue alerts (daily)
"""
import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

from lumilib.models.book import Book
from lumilib.models.borrow import BorrowRecord
from lumilib.models.notification import Notification
from lumilib.models.system_config import SystemSettings
from lumilib.models.system_log import SystemLog

logger = logging.getLogger(__name__)


def send_due_date_reminders(app, now: Optional[datetime] = None) -> int:
    """Scheduled task: Send reminders for books due within DUE_SOON_DAYS.

    Runs daily at 9:00 AM.

    Returns:
        Number of reminders sent.
    """
    with app.app_context():
        try:
            now = now or datetime.now()
            reminder_count = 0
            for record in BorrowRecord.get_due_soon(now):
                book = Book.get_by_id(record.book_id)
                title = book.title if book else f'Book {record.book_id}'
                Notification.create(
                    record.user_id,
                    'reminder',
                    'Book Due Date Reminder',
                    f'Reminder: "{title}" is due in {record.days_left(now)} day(s) '
                    f'on {record.due_at.strftime("%Y-%m-%d")}. Please return it on time.'
                )
                reminder_count += 1

            if reminder_count > 0:
                logger.info("Sent %d due date reminder(s)", reminder_count)
                SystemLog.add(
                    'Scheduled Task: Due Date Reminders',
                    f'Successfully sent {reminder_count} reminder(s)',
                    'system',
                    None
                )
            return reminder_count
        except Exception as e:
            logger.exception("Error in send_due_date_reminders")
            SystemLog.add(
                'Scheduled Task Error',
                f'Failed to send reminders: {str(e)}',
                'error',
                None
            )
            return 0


def send_overdue_notifications(app, now: Optional[datetime] = None) -> int:
    """Scheduled task: Mark overdue loans and alert their borrowers.

    Runs daily at 10:00 AM. Stored 'borrowed' records past their due date
    are switched to 'overdue', then every overdue borrower is notified
    with the fine accrued so far.

    Returns:
        Number of alerts sent.
    """
    with app.app_context():
        try:
            now = now or datetime.now()
            changed = BorrowRecord.sync_overdue_statuses(now)
            if changed:
                logger.info("Marked %d record(s) overdue", len(changed))

            settings = SystemSettings.get()
            notification_count = 0
            for record in BorrowRecord.get_overdue_records(now):
                book = Book.get_by_id(record.book_id)
                title = book.title if book else f'Book {record.book_id}'
                fine = record.current_fine(now, settings)
                Notification.create(
                    record.user_id,
                    'alert',
                    'Overdue Book Alert',
                    f'Overdue Alert: "{title}" is past its due date. '
                    f'Current fine: {fine:.2f}. Please return it immediately.'
                )
                notification_count += 1

            if notification_count > 0:
                logger.info("Sent %d overdue notification(s)", notification_count)
                SystemLog.add(
                    'Scheduled Task: Overdue Notifications',
                    f'Successfully sent {notification_count} notification(s)',
                    'system',
                    None
                )
            return notification_count
        except Exception as e:
            logger.exception("Error in send_overdue_notifications")
            SystemLog.add(
                'Scheduled Task Error',
                f'Failed to send overdue notifications: {str(e)}',
                'error',
                None
            )
            return 0


# Initialize scheduler
scheduler = BackgroundScheduler()


def start_scheduler(app):
    """Register the jobs for ``app`` and start the background scheduler."""
    if scheduler.running:
        return

    scheduler.add_job(
        func=send_due_date_reminders,
        args=[app],
        trigger='cron',
        hour=9,
        minute=0,
        id='send_due_date_reminders',
        name='Send due date reminders',
        replace_existing=True
    )
    scheduler.add_job(
        func=send_overdue_notifications,
        args=[app],
        trigger='cron',
        hour=10,
        minute=0,
        id='send_overdue_notifications',
        name='Send overdue notifications',
        replace_existing=True
    )
    scheduler.start()
    logger.info("Scheduled tasks started successfully")

    with app.app_context():
        SystemLog.add(
            'System Startup',
            'Background task scheduler started',
            'system',
            None
        )


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduled tasks shut down")
