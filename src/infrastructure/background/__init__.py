# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background processing: Dramatiq broker, actors and the APScheduler front-end.

The actors live in ``src.infrastructure.background.tasks`` and are not
imported here, so the API can configure the broker before any actor is
declared. Workers run with:

    dramatiq src.infrastructure.background.tasks --processes 2 --threads 4
"""

from src.infrastructure.background.broker import (
    BrokerManager,
    Priority,
    Queues,
    get_broker_manager,
    setup_dramatiq,
    shutdown_dramatiq,
)
from src.infrastructure.background.scheduler import (
    DramatiqScheduler,
    ScheduledTask,
    get_scheduler,
    start_scheduler,
    stop_scheduler,
)

__all__ = [
    "BrokerManager",
    "Priority",
    "Queues",
    "get_broker_manager",
    "setup_dramatiq",
    "shutdown_dramatiq",
    "DramatiqScheduler",
    "ScheduledTask",
    "get_scheduler",
    "start_scheduler",
    "stop_scheduler",
]
