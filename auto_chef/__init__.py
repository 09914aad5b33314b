"""AutoChef order fulfillment engine."""

from . import actions, actuator, api_client, arm, catalog, config, executor, matching, monitor, orchestrator, poller, service

__all__ = [
    "actions",
    "actuator",
    "api_client",
    "arm",
    "catalog",
    "config",
    "executor",
    "matching",
    "monitor",
    "orchestrator",
    "poller",
    "service",
]
