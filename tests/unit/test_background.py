# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the broker, scheduler and suggestion actors.

Runs against the StubBroker (DRAMATIQ_TEST_MODE=true in conftest).
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from apscheduler.triggers.cron import CronTrigger
from dramatiq.brokers.stub import StubBroker

from src.domains.suggestion.models import Subject
from src.infrastructure.background import tasks
from src.infrastructure.background.broker import BrokerManager, Priority, Queues
from src.infrastructure.background.scheduler import (
    DramatiqScheduler,
    get_scheduler,
    parse_cron,
    start_scheduler,
    stop_scheduler,
)
from src.infrastructure.background.tasks import suggestions as suggestion_tasks


class TestBrokerManager:
    """Tests for BrokerManager."""

    def test_stub_broker_in_test_mode(self) -> None:
        manager = BrokerManager()

        broker = manager.setup()

        assert isinstance(broker, StubBroker)
        assert manager.is_initialized
        assert manager.setup() is broker
        assert manager.get_queue_stats() == {"broker_type": "stub", "status": "healthy"}

    def test_uninitialized(self) -> None:
        manager = BrokerManager()

        assert manager.get_queue_stats() == {"status": "not_initialized"}
        with pytest.raises(RuntimeError):
            _ = manager.broker

    def test_shutdown_resets(self) -> None:
        manager = BrokerManager()
        manager.setup()

        manager.shutdown()

        assert not manager.is_initialized


class TestSuggestionActors:
    """Tests for the suggestion refresh actors."""

    def test_actor_routing(self) -> None:
        nightly = tasks.refresh_suggestion_cache
        single = tasks.refresh_subject_suggestions

        assert nightly.queue_name == Queues.SUGGESTIONS
        assert nightly.priority == Priority.LOW
        assert nightly.options["max_retries"] == 1
        assert single.queue_name == Queues.SUGGESTIONS
        assert single.options["max_retries"] == 3
        assert tasks.get_all_actors() == [nightly, single]

    def test_nightly_refresh_runs_every_subject(self) -> None:
        summary = {"processed": 2, "failed": 0}

        with (
            patch.object(suggestion_tasks, "run_async", side_effect=asyncio.run),
            patch.object(
                suggestion_tasks, "_run_refresh", AsyncMock(return_value=summary)
            ) as run_refresh,
        ):
            result = tasks.refresh_suggestion_cache()

        assert result == summary
        run_refresh.assert_awaited_once_with()

    def test_single_subject_refresh(self) -> None:
        group = Subject.group("group-1", "school-1")

        with (
            patch.object(suggestion_tasks, "run_async", side_effect=asyncio.run),
            patch.object(suggestion_tasks, "_resolve_subject", AsyncMock(return_value=group)),
            patch.object(
                suggestion_tasks, "_run_refresh", AsyncMock(return_value={"processed": 1})
            ) as run_refresh,
        ):
            result = tasks.refresh_subject_suggestions("group", "group-1")

        assert result == {"processed": 1}
        run_refresh.assert_awaited_once_with([group])

    def test_inactive_subject_is_skipped(self) -> None:
        with (
            patch.object(suggestion_tasks, "run_async", side_effect=asyncio.run),
            patch.object(suggestion_tasks, "_resolve_subject", AsyncMock(return_value=None)),
            patch.object(suggestion_tasks, "_run_refresh", AsyncMock()) as run_refresh,
        ):
            result = tasks.refresh_subject_suggestions("learner", "gone")

        assert result["status"] == "skipped"
        run_refresh.assert_not_awaited()


class TestParseCron:
    def test_five_fields(self) -> None:
        trigger = parse_cron("0 3 * * *")

        assert isinstance(trigger, CronTrigger)
        assert "hour='3'" in str(trigger)

    @pytest.mark.parametrize("expression", ["", "0 3 * *", "0 3 * * * *"])
    def test_rejects_wrong_field_count(self, expression: str) -> None:
        with pytest.raises(ValueError, match="Invalid cron expression"):
            parse_cron(expression)


class TestDramatiqScheduler:
    """Tests for DramatiqScheduler."""

    def test_tasks_registered_before_start(self) -> None:
        scheduler = DramatiqScheduler()

        task = scheduler.add_cron_task("Nightly", "refresh_suggestion_cache", "0 3 * * *")

        assert scheduler.list_tasks() == [task]
        assert scheduler.get_stats()["task_count"] == 1

    def test_resolves_actor_by_name(self) -> None:
        scheduler = DramatiqScheduler()

        assert scheduler._get_actor("refresh_suggestion_cache") is tasks.refresh_suggestion_cache
        assert scheduler._get_actor("no_such_actor") is None

    @pytest.mark.asyncio
    async def test_execute_sends_message(self) -> None:
        scheduler = DramatiqScheduler()
        actor = MagicMock()
        scheduler._get_actor = MagicMock(return_value=actor)
        task = scheduler.add_cron_task("Nightly", "refresh_suggestion_cache", "0 3 * * *")

        await scheduler._execute_task(task.id)

        actor.send.assert_called_once_with()
        assert task.run_count == 1
        assert task.last_run is not None

    @pytest.mark.asyncio
    async def test_missing_actor_counts_error(self) -> None:
        scheduler = DramatiqScheduler()
        task = scheduler.add_cron_task("Broken", "no_such_actor", "0 3 * * *")

        await scheduler._execute_task(task.id)

        assert task.error_count == 1
        assert task.run_count == 0

    @pytest.mark.asyncio
    async def test_start_registers_nightly_refresh(self) -> None:
        scheduler = await start_scheduler()
        try:
            assert scheduler.is_running
            assert [t.actor_name for t in scheduler.list_tasks()] == ["refresh_suggestion_cache"]
        finally:
            await stop_scheduler()

        assert not scheduler.is_running
        assert get_scheduler() is not scheduler

    @pytest.mark.asyncio
    async def test_tasks_registered_before_start_are_scheduled(self) -> None:
        scheduler = DramatiqScheduler()
        nightly = scheduler.add_cron_task("Nightly", "refresh_suggestion_cache", "0 3 * * *")

        await scheduler.start()
        try:
            jobs = {job.id for job in scheduler._scheduler.get_jobs()}
            assert jobs == {nightly.id}
        finally:
            await scheduler.stop()

    def test_stats_describe_schedule(self) -> None:
        scheduler = DramatiqScheduler()
        scheduler.add_cron_task("Nightly", "refresh_suggestion_cache", "0 3 * * *")

        stats = scheduler.get_stats()

        assert stats["is_running"] is False
        assert stats["tasks"][0]["schedule"] == "cron 0 3 * * *"
