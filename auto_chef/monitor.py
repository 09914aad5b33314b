"""Watch the actuator after dispatch until it finishes, fails, times out or is cancelled."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .actuator import Actuator
from .config import MonitorConfig
from .rc_logging import StatusBoard
from .rc_types import ActuatorStatus
from .utils import pause

LOGGER = logging.getLogger(__name__)


class MonitorOutcome(str, Enum):
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    TIMED_OUT = "TimedOut"


@dataclass(frozen=True)
class MonitorResult:
    outcome: MonitorOutcome
    elapsed_ms: int
    last_status: ActuatorStatus


class CompletionMonitor:

    def __init__(
        self,
        cfg: MonitorConfig,
        shutdown: Optional[asyncio.Event] = None,
        board: Optional[StatusBoard] = None,
    ) -> None:
        self.cfg = cfg
        self.shutdown = shutdown
        self.board = board

    async def wait(self, actuator: Actuator, label: str = "order") -> MonitorResult:
        interval = self.cfg.check_interval_ms
        elapsed = 0
        status = ActuatorStatus.WAITING

        while elapsed < self.cfg.max_wait_ms:
            status = actuator.get_status()
            if status == ActuatorStatus.COMPLETED:
                return MonitorResult(MonitorOutcome.COMPLETED, elapsed, status)
            if status == ActuatorStatus.FAILED:
                return MonitorResult(MonitorOutcome.FAILED, elapsed, status)

            if self.board is not None:
                self.board.current = (
                    f"{label}: Cooking... ({elapsed // 1000}s / {self.cfg.max_wait_ms // 1000}s) - Status: {status.value}"
                )

            if await pause(interval / 1000.0, self.shutdown):
                LOGGER.warning("Cancelled while waiting for recipe completion (%s)", label)
                return MonitorResult(MonitorOutcome.CANCELLED, elapsed, status)

            elapsed += interval
            if self.cfg.progress_interval_ms > 0 and elapsed % self.cfg.progress_interval_ms < interval:
                message = f"Still processing recipe for {label}... ({elapsed // 1000}s elapsed, Status: {status.value})"
                if self.board is not None:
                    self.board.post(message)
                else:
                    LOGGER.info(message)

        status = actuator.get_status()
        if status == ActuatorStatus.COMPLETED:
            return MonitorResult(MonitorOutcome.COMPLETED, elapsed, status)
        if status == ActuatorStatus.FAILED:
            return MonitorResult(MonitorOutcome.FAILED, elapsed, status)
        LOGGER.warning("Recipe processing timed out for %s (status: %s)", label, status.value)
        return MonitorResult(MonitorOutcome.TIMED_OUT, elapsed, status)
