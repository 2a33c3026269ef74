import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from trakly.core.clock import Clock, as_utc, system_clock
from trakly.models.task import Task
from trakly.models.user import User
from trakly.services.mailer import NotificationSender

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    sent: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)


def build_reminder_message(task: Task, owner: User) -> Tuple[str, str]:
    deadline = as_utc(task.deadline)
    lines = [
        f"Hi {owner.name or owner.email.split('@')[0]},",
        "",
        f'Your task "{task.title}" ({task.subject_name}) is due on '
        f"{deadline:%a %d %b %Y, %H:%M} UTC.",
    ]
    if task.description:
        lines += ["", task.description]
    lines += ["", "Best,", "Trakly Team"]
    return f"Reminder: {task.title} Due Soon", "\n".join(lines)


class ReminderSweeper:
    """
    One pass over the task table: every pending task whose reminder time has
    passed gets one mail to its owner. The reminder is cleared only after the
    sender reports success, so a failed delivery is retried on the next pass.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        sender: NotificationSender,
        clock: Clock = system_clock,
    ):
        self.session_factory = session_factory
        self.sender = sender
        self.clock = clock

    async def due_reminders(self, session: AsyncSession, now: datetime) -> List[Tuple[Task, User]]:
        result = await session.execute(
            select(Task, User)
            .join(User, User.id == Task.user_id)
            .where(Task.reminder_time.is_not(None))
            .where(Task.reminder_time <= now)
            .where(Task.status == "pending")
            .order_by(Task.reminder_time)
        )
        return [(task, owner) for task, owner in result.all()]

    async def _clear_reminder(self, task_id: int, armed_at: datetime) -> bool:
        # Matching on the old value leaves a reminder the owner re-armed mid-send alone
        async with self.session_factory() as session:
            result = await session.execute(
                update(Task)
                .where(Task.id == task_id)
                .where(Task.reminder_time == armed_at)
                .values(reminder_time=None)
            )
            await session.commit()
            return result.rowcount > 0

    async def _deliver(self, task: Task, owner: User) -> bool:
        if not owner.email:
            logger.warning("Task %s owner %s has no email; reminder stays armed", task.id, owner.id)
            return False

        subject, body = build_reminder_message(task, owner)
        outcome = await self.sender.send(owner.email, subject, body)
        if not outcome.ok:
            logger.warning("Reminder for task %s not delivered (%s); retrying next sweep", task.id, outcome.error)
            return False

        if not await self._clear_reminder(task.id, task.reminder_time):
            logger.info("Reminder for task %s changed while sending; left as is", task.id)
        logger.info("Reminder sent for task %s to %s", task.id, owner.email)
        return True

    async def sweep(self) -> SweepReport:
        now = self.clock.now()
        report = SweepReport()

        async with self.session_factory() as session:
            due = await self.due_reminders(session, now)

        for task, owner in due:
            try:
                delivered = await self._deliver(task, owner)
            except Exception:
                logger.exception("Reminder for task %s failed", task.id)
                delivered = False
            (report.sent if delivered else report.failed).append(task.id)

        return report


class ReminderScheduler:
    """Runs ReminderSweeper.sweep on a fixed interval inside the app's event loop."""

    JOB_ID = "reminder_sweep"

    def __init__(self, sweeper: ReminderSweeper, interval_minutes: int = 1):
        self.sweeper = sweeper
        self.interval_minutes = interval_minutes
        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)

    async def run_tick(self) -> Optional[SweepReport]:
        try:
            report = await self.sweeper.sweep()
        except Exception:
            # Store down or similar; the next tick tries again
            logger.exception("Reminder sweep failed")
            return None
        if report.sent or report.failed:
            logger.info("Reminder sweep: %d sent, %d failed", len(report.sent), len(report.failed))
        return report

    def start(self) -> None:
        self.scheduler.add_job(
            self.run_tick,
            trigger="interval",
            minutes=self.interval_minutes,
            id=self.JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info("Reminder scheduler started (every %d min).", self.interval_minutes)

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Reminder scheduler stopped.")
