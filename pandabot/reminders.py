"""One-shot reminder jobs on top of APScheduler.

The reminders table is the source of truth. Jobs live in the scheduler's
memory store and :meth:`ReminderScheduler.restore` rebuilds them from the
table at startup, so pending reminders survive restarts.

Scheduling is two-phase: the reminder row is written first, then the job is
added and its id saved on the row. If the process dies in between, the row
stays ``active`` without a job until the next ``restore``.
"""

import time
from datetime import datetime
from typing import Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from telegram.error import TelegramError

from . import config, db
from .models import Reminder
from .notifier import Notifier, is_unreachable

BELL = "\U0001f514"
MAX_ATTEMPTS = 3
RETRY_DELAY = 60


def job_id_for(reminder_id: int) -> str:
    return f"reminder:{reminder_id}"


def format_reminder(message: str) -> str:
    return f"{BELL} Reminder\n\n{message}"


class ReminderScheduler:
    def __init__(
        self, scheduler: BaseScheduler, notifier: Notifier, tz=None
    ) -> None:
        self.scheduler = scheduler
        self.notifier = notifier
        self.tz = tz or config.TZ

    def _add_job(
        self, reminder: Reminder, run_at: Optional[float] = None, attempt: int = 1
    ) -> str:
        run_at = reminder.remind_at if run_at is None else run_at
        job = self.scheduler.add_job(
            self.fire,
            "date",
            run_date=datetime.fromtimestamp(run_at, self.tz),
            args=(reminder.id, attempt),
            id=job_id_for(reminder.id),
            replace_existing=True,
            misfire_grace_time=None,
        )
        return job.id

    async def schedule(
        self, user_id: int, message: str, remind_at: datetime
    ) -> Reminder:
        """Persist a reminder and enqueue the job that delivers it."""
        reminder = await db.add_reminder(user_id, message, remind_at.timestamp())
        reminder.job_id = self._add_job(reminder)
        await db.set_reminder_job(reminder.id, reminder.job_id)
        return reminder

    async def cancel(self, user_id: int, reminder_id: int) -> bool:
        """Cancel an active reminder of ``user_id``.

        Returns ``False`` when there is no such active reminder. A job that
        already ran or never existed is ignored.
        """
        reminder = await db.get_reminder(reminder_id)
        if reminder is None or reminder.user_id != user_id:
            return False
        if not await db.finish_reminder(reminder_id, "cancelled", user_id):
            return False
        try:
            self.scheduler.remove_job(reminder.job_id or job_id_for(reminder_id))
        except JobLookupError:
            config.logger.debug("no job left for reminder %s", reminder_id)
        return True

    async def fire(self, reminder_id: int, attempt: int = 1) -> None:
        """Deliver a due reminder and mark it completed.

        Transient delivery errors re-enqueue the job after
        ``RETRY_DELAY`` seconds, up to ``MAX_ATTEMPTS`` deliveries in total.
        After that the reminder stays ``active`` until the next ``restore``.
        """
        reminder = await db.get_reminder(reminder_id)
        if reminder is None or reminder.status != "active":
            return
        try:
            await self.notifier.send(reminder.user_id, format_reminder(reminder.message))
        except TelegramError as exc:
            if is_unreachable(exc):
                config.logger.warning(
                    "user %s unreachable, cancelling reminder %s",
                    reminder.user_id,
                    reminder_id,
                )
                await db.finish_reminder(reminder_id, "cancelled")
                await db.set_user_flag(reminder.user_id, "is_blocked", True)
            elif attempt < MAX_ATTEMPTS:
                config.logger.warning(
                    "reminder %s delivery attempt %s failed, retrying in %ss: %r",
                    reminder_id,
                    attempt,
                    RETRY_DELAY,
                    exc,
                )
                self._add_job(reminder, time.time() + RETRY_DELAY, attempt + 1)
            else:
                config.logger.error(
                    "reminder %s undelivered after %s attempts, kept active: %r",
                    reminder_id,
                    attempt,
                    exc,
                )
            return
        await db.finish_reminder(reminder_id, "completed")

    async def restore(self) -> int:
        """Re-enqueue every active reminder and return how many were scheduled."""
        reminders = await db.list_active_reminders()
        for reminder in reminders:
            job_id = self._add_job(reminder)
            if job_id != reminder.job_id:
                await db.set_reminder_job(reminder.id, job_id)
        if reminders:
            config.logger.info("restored %s pending reminders", len(reminders))
        return len(reminders)
