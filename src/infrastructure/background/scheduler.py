# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""APScheduler front-end that enqueues Dramatiq actors on a schedule.

Jobs never do work in the API process: each firing sends one message to
the actor's queue and the Dramatiq workers pick it up. Jobs coalesce and
never overlap, so a missed or slow nightly refresh yields a single run.

Example:
    from src.infrastructure.background.scheduler import get_scheduler

    scheduler = get_scheduler()
    scheduler.add_cron_task(
        name="Nightly Suggestion Refresh",
        actor_name="refresh_suggestion_cache",
        cron_expression="0 3 * * *",
    )
    await scheduler.start()
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import uuid4

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger

from src.core.config import get_settings

logger = logging.getLogger(__name__)

NIGHTLY_REFRESH_NAME = "Nightly Suggestion Refresh"
NIGHTLY_REFRESH_ACTOR = "refresh_suggestion_cache"

JOB_DEFAULTS = {
    "coalesce": True,
    "max_instances": 1,
    "misfire_grace_time": 3600,
}


def parse_cron(cron_expression: str) -> CronTrigger:
    """Build a UTC trigger from a five-field cron expression.

    Raises:
        ValueError: If the expression does not have five fields.
    """
    fields = cron_expression.split()
    if len(fields) != 5:
        raise ValueError(f"Invalid cron expression: {cron_expression!r}")

    minute, hour, day, month, day_of_week = fields
    return CronTrigger(
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=day_of_week,
        timezone=timezone.utc,
    )


@dataclass
class ScheduledTask:
    """An actor message sent on a trigger.

    Attributes:
        name: Human-readable task name.
        actor_name: Attribute name of the actor in the tasks package.
        trigger: When the message is sent.
        schedule: Printable form of the trigger.
        args: Positional arguments for the actor.
        kwargs: Keyword arguments for the actor.
        id: Unique task identifier, also the APScheduler job id.
        last_run: Last time a message was sent.
        run_count: Messages sent.
        error_count: Firings that could not send a message.
    """

    name: str
    actor_name: str
    trigger: BaseTrigger
    schedule: str
    args: tuple = ()
    kwargs: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    last_run: datetime | None = None
    run_count: int = 0
    error_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "actor_name": self.actor_name,
            "schedule": self.schedule,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "error_count": self.error_count,
        }


class DramatiqScheduler:
    """Owns the APScheduler instance and the registered tasks.

    Tasks can be registered before or after start(); the ones registered
    before are scheduled when the scheduler starts.
    """

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None
        self._tasks: dict[str, ScheduledTask] = {}

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def _get_actor(self, actor_name: str) -> Callable[..., Any] | None:
        from src.infrastructure.background import tasks

        return getattr(tasks, actor_name, None)

    def _register(self, task: ScheduledTask) -> ScheduledTask:
        self._tasks[task.id] = task
        if self.is_running:
            self._schedule(task)
        logger.info("Registered scheduled task %s (%s)", task.name, task.schedule)
        return task

    def _schedule(self, task: ScheduledTask) -> None:
        if self._scheduler is None:
            return
        self._scheduler.add_job(
            self._execute_task,
            trigger=task.trigger,
            args=[task.id],
            id=task.id,
            name=task.name,
            replace_existing=True,
        )

    def add_cron_task(
        self,
        name: str,
        actor_name: str,
        cron_expression: str,
        args: tuple = (),
        kwargs: dict[str, Any] | None = None,
    ) -> ScheduledTask:
        """Send an actor message on a cron schedule (UTC).

        Raises:
            ValueError: If the cron expression is invalid.
        """
        return self._register(
            ScheduledTask(
                name=name,
                actor_name=actor_name,
                trigger=parse_cron(cron_expression),
                schedule=f"cron {cron_expression}",
                args=args,
                kwargs=kwargs or {},
            )
        )

    async def _execute_task(self, task_id: str) -> None:
        task = self._tasks.get(task_id)
        if task is None:
            return

        actor = self._get_actor(task.actor_name)
        if actor is None:
            task.error_count += 1
            logger.error("Scheduled task %s: unknown actor %s", task.name, task.actor_name)
            return

        try:
            actor.send(*task.args, **task.kwargs)
        except Exception as e:
            task.error_count += 1
            logger.error("Scheduled task %s could not enqueue: %s", task.name, e)
            return

        task.last_run = datetime.now(timezone.utc)
        task.run_count += 1
        logger.info("Scheduled task %s enqueued %s", task.name, task.actor_name)

    def list_tasks(self) -> list[ScheduledTask]:
        return list(self._tasks.values())

    async def start(self) -> None:
        """Start APScheduler on the running loop and schedule every registered task."""
        if self.is_running:
            return

        self._scheduler = AsyncIOScheduler(timezone=timezone.utc, job_defaults=JOB_DEFAULTS)
        self._scheduler.start()
        for task in self._tasks.values():
            self._schedule(task)

        logger.info("Scheduler started with %d tasks", len(self._tasks))

    async def stop(self) -> None:
        if self._scheduler is None:
            return

        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Scheduler stopped")

    def get_stats(self) -> dict[str, Any]:
        tasks = list(self._tasks.values())
        return {
            "is_running": self.is_running,
            "task_count": len(tasks),
            "total_runs": sum(t.run_count for t in tasks),
            "total_errors": sum(t.error_count for t in tasks),
            "tasks": [t.to_dict() for t in tasks],
        }


_scheduler: DramatiqScheduler | None = None


def get_scheduler() -> DramatiqScheduler:
    """Get the process-wide scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = DramatiqScheduler()
    return _scheduler


async def start_scheduler() -> DramatiqScheduler:
    """Register the nightly suggestion refresh and start the scheduler."""
    scheduler = get_scheduler()
    if not any(t.actor_name == NIGHTLY_REFRESH_ACTOR for t in scheduler.list_tasks()):
        scheduler.add_cron_task(
            name=NIGHTLY_REFRESH_NAME,
            actor_name=NIGHTLY_REFRESH_ACTOR,
            cron_expression=get_settings().suggestion.refresh_cron,
        )
    await scheduler.start()
    return scheduler


async def stop_scheduler() -> None:
    """Stop and discard the process-wide scheduler."""
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None
