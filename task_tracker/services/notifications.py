"""
Due-date notification scheduler.

Once a day, at a fixed wall-clock time in a fixed zone:
- fetch every user,
- fetch each user's tasks due today that are not done,
- email a digest to every user who has any.

Failures are isolated: a store error for one user, or a mail error for one
recipient, is logged and the pass continues with the rest.
"""
from __future__ import annotations

import asyncio
import html
import logging
from collections.abc import Awaitable, Callable
from datetime import date, datetime
from typing import Optional, Protocol

from task_tracker.errors import DeliveryError, PersistenceError
from task_tracker.models.task import TaskInDB
from task_tracker.services.firestore import TaskStore, UserStore
from task_tracker.timeutil import local_now, next_run_at, seconds_between, zone

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    async def send(self, to: str, subject: str, html_body: str) -> None: ...


def build_digest_html(tasks: list[TaskInDB]) -> str:
    items = "".join(
        "<li><b>{}</b> -> {} -> [In: {}]</li>".format(
            html.escape(t.title), html.escape(t.description), t.status.value
        )
        for t in tasks
    )
    return f"<html><body><h1>Tasks Due Today</h1><ul>{items}</ul></body></html>"


def digest_subject(today: date) -> str:
    return f"Tasks due on {today.isoformat()}"


class DueDateNotifier:
    """
    Daily digest runner.

    ``start()`` spawns the loop as an asyncio task; ``stop()`` cancels it. A pass
    that is running when ``stop()`` is called is abandoned.
    """

    def __init__(
        self,
        users: UserStore,
        tasks: TaskStore,
        mailer: Mailer,
        *,
        tz_name: str = "Europe/Bucharest",
        hour: int = 6,
        minute: int = 0,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.users = users
        self.tasks = tasks
        self.mailer = mailer
        self.zone = zone(tz_name)
        self.hour = hour
        self.minute = minute
        self._clock = clock or (lambda: local_now(self.zone))
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def now(self) -> datetime:
        return self._clock().astimezone(self.zone)

    def start(self) -> asyncio.Task[None]:
        if self.running:
            return self._task  # type: ignore[return-value]
        self._task = asyncio.create_task(self.run_forever(), name="due-date-notifier")
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Scheduler stopped")

    async def run_forever(self) -> None:
        logger.info(
            "Scheduler is active, digests go out daily at %02d:%02d %s",
            self.hour, self.minute, self.zone.key,
        )

        last_fire: Optional[datetime] = None
        while True:
            now = self.now()
            # A wake-up slightly before the last trigger must not select it again.
            reference = now if last_fire is None or now > last_fire else last_fire
            fire_at = next_run_at(reference, self.hour, self.minute)
            delay = max(0.0, seconds_between(now, fire_at))
            logger.info("Next notification pass at %s (in %.0fs)", fire_at.isoformat(), delay)

            await self._sleep(delay)
            last_fire = fire_at

            try:
                await self.run_once(fire_at.date())
            except Exception:
                logger.exception("Notification pass failed")

    async def run_once(self, today: Optional[date] = None) -> int:
        """Run one notification pass. Returns the number of emails sent."""
        today = today or self.now().date()
        logger.info("Running scheduler for task emails due %s", today.isoformat())

        try:
            users = await self.users.list_users()
        except PersistenceError:
            logger.exception("Error in scheduler while fetching users")
            users = []

        sent = 0
        for user in users:
            try:
                if await self._notify(user.id, user.email, today):
                    sent += 1
            except Exception:
                logger.exception("Error in scheduler while notifying user %s", user.id)

        logger.info("Scheduler finished, %d email(s) sent", sent)
        return sent

    async def _notify(self, user_id: str, email: str, today: date) -> bool:
        try:
            due = await self.tasks.list_tasks_due_on(user_id, today)
        except PersistenceError:
            logger.exception("Error in scheduler while fetching tasks for user %s", user_id)
            return False

        if not due:
            return False

        try:
            await self.mailer.send(email, digest_subject(today), build_digest_html(due))
        except DeliveryError as e:
            logger.error("Error sending email to %s: %s", email, e.detail)
            return False

        logger.debug("Email sent to %s for %d tasks", email, len(due))
        return True
