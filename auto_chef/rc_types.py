from collections import namedtuple
from enum import Enum


TTaskResult = namedtuple("TaskResult", ["success", "duration"])
TIngredientMatch = namedtuple("IngredientMatch", ["ingredient", "rule"])


class OrderStatus(str, Enum):
    """Status strings pushed to the backend."""

    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"


class ActuatorStatus(str, Enum):
    WAITING = "Waiting"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ActuatorStatus.COMPLETED, ActuatorStatus.FAILED)


class OrderOutcome(str, Enum):
    COMPLETED = "Completed"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"
    CANCELLED = "Cancelled"
    REFUSED = "Refused"
