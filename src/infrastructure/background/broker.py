# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Dramatiq broker for the suggestion refresh actors.

The API process only enqueues; workers started with
``dramatiq src.infrastructure.background.tasks`` consume. Messages go
through Redis, except when DRAMATIQ_TEST_MODE=true, where an in-process
StubBroker is installed instead.
"""

import logging
import os
from typing import Any

import dramatiq
import redis
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker

from src.core.config import get_settings

logger = logging.getLogger(__name__)


class Queues:
    """Queue names actors are routed to."""

    DEFAULT = "default"
    SUGGESTIONS = "suggestions"

    ALL = (DEFAULT, SUGGESTIONS)


class Priority:
    """Actor priorities; lower runs first."""

    HIGH = 1
    NORMAL = 3
    LOW = 5


def _test_mode() -> bool:
    return os.getenv("DRAMATIQ_TEST_MODE", "false").lower() == "true"


def _build_broker() -> dramatiq.Broker:
    if _test_mode():
        broker = StubBroker()
        broker.emit_after("process_boot")
        logger.info("Using in-process StubBroker")
        return broker

    url = get_settings().redis.url
    logger.info("Using Redis broker at %s", url.rpartition("@")[2])
    return RedisBroker(url=url)


class BrokerManager:
    """Owns the process-wide broker and installs it as Dramatiq's global one."""

    def __init__(self) -> None:
        self._broker: dramatiq.Broker | None = None

    @property
    def is_initialized(self) -> bool:
        return self._broker is not None

    @property
    def broker(self) -> dramatiq.Broker:
        """The installed broker.

        Raises:
            RuntimeError: If setup() has not run.
        """
        if self._broker is None:
            raise RuntimeError("Broker not initialized. Call setup() first.")
        return self._broker

    def setup(self) -> dramatiq.Broker:
        """Build and install the broker once; later calls return the same one."""
        if self._broker is None:
            self._broker = _build_broker()
            dramatiq.set_broker(self._broker)
        return self._broker

    def shutdown(self) -> None:
        if self._broker is None:
            return
        self._broker.close()
        self._broker = None
        logger.info("Broker closed")

    def get_queue_stats(self) -> dict[str, Any]:
        """Pending message counts per queue, for the readiness probe."""
        if self._broker is None:
            return {"status": "not_initialized"}
        if not isinstance(self._broker, RedisBroker):
            return {"broker_type": "stub", "status": "healthy"}

        try:
            queues = {
                queue: self._broker.client.llen(f"dramatiq:{queue}") for queue in Queues.ALL
            }
        except redis.RedisError as e:
            logger.warning("Could not read queue lengths: %s", e)
            return {"broker_type": "redis", "status": "error", "error": str(e)}
        return {"broker_type": "redis", "status": "healthy", "queues": queues}


_broker_manager: BrokerManager | None = None


def get_broker_manager() -> BrokerManager:
    global _broker_manager
    if _broker_manager is None:
        _broker_manager = BrokerManager()
    return _broker_manager


def setup_dramatiq() -> dramatiq.Broker:
    """Install the broker. Called at API startup and when the tasks package is imported."""
    return get_broker_manager().setup()


def shutdown_dramatiq() -> None:
    global _broker_manager
    if _broker_manager is not None:
        _broker_manager.shutdown()
        _broker_manager = None
