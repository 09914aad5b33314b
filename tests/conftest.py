"""Shared fakes and fixtures for the AutoChef engine tests."""

from __future__ import annotations

import asyncio
from collections import Counter, deque
from typing import Dict, Iterable, List, Optional

import numpy as np
import pytest

from auto_chef.arm import SimulatedArm
from auto_chef.config import ApiConfig, ApiSettings, ExecutionConfig, MainConfig, MonitorConfig
from auto_chef.errors import TransientBackendError
from auto_chef.models import OrderApiModel, RecipeApiModel, RecipeStepApiModel, RobotStepApiModel

PHO_BO = {
    "recipeId": 2,
    "recipeName": "Phở bò",
    "ingredients": "Bánh phở, thịt bò, hành, rau thơm, nước dùng",
    "isActive": True,
}
PHO_GA = {
    "recipeId": 6,
    "recipeName": "Phở gà",
    "ingredients": "Bánh phở; thịt gà; rau thơm; nước dùng",
    "isActive": True,
}
RETIRED = {"recipeId": 9, "recipeName": "Bún chả", "ingredients": "bún, chả", "isActive": False}

PHO_BO_STEPS = [
    {"stepId": 14, "recipeId": 2, "stepDescription": "Garnish and serve", "stepNumber": 5},
    {"stepId": 10, "recipeId": 2, "stepDescription": "Gắp Bánh phở vào tô", "stepNumber": 1},
    {"stepId": 11, "recipeId": 2, "stepDescription": "Thêm thịt bò tái", "stepNumber": 2},
    {"stepId": 12, "recipeId": 2, "stepDescription": "Add fresh vegetables", "stepNumber": 3},
    {"stepId": 13, "recipeId": 2, "stepDescription": "Chan broth nóng", "stepNumber": 4},
]
PHO_GA_STEPS = [
    {"stepId": 20, "recipeId": 6, "stepDescription": "Xếp thịt gà lên trên", "stepNumber": 1},
]

ROBOT_TASKS = [
    {"stepTaskId": 2, "stepId": 10, "taskDescription": "Place noodles into bowl", "taskOrder": 2,
     "estimatedTime": "00:00:03", "repeatCount": 1},
    {"stepTaskId": 1, "stepId": 10, "taskDescription": "Move arm to noodle station", "taskOrder": 1,
     "estimatedTime": "00:00:02", "repeatCount": 1},
    {"stepTaskId": 3, "stepId": 11, "taskDescription": "Pick up beef", "taskOrder": 1,
     "estimatedTime": "00:00:04", "repeatCount": 1},
    {"stepTaskId": 4, "stepId": 12, "taskDescription": "Đặt rau thơm", "taskOrder": 1,
     "estimatedTime": "00:00:01.5", "repeatCount": 3},
    {"stepTaskId": 5, "stepId": 13, "taskDescription": "Pour broth", "taskOrder": 1,
     "estimatedTime": "not-a-time", "repeatCount": 0},
    {"stepTaskId": 6, "stepId": 14, "taskDescription": "Wipe bowl rim", "taskOrder": 1,
     "estimatedTime": "00:00:02", "repeatCount": 1},
    {"stepTaskId": 7, "stepId": 20, "taskDescription": "Đặt thịt gà", "taskOrder": 1,
     "estimatedTime": "00:00:02", "repeatCount": 1},
]


def make_order(order_id: int = 101, recipe_id: int = 2, robot_id: int = 1) -> OrderApiModel:
    return OrderApiModel.model_validate(
        {"orderId": order_id, "recipeId": recipe_id, "robotId": robot_id, "locationId": 3,
         "status": "Pending", "orderedTime": "2024-05-01T10:00:00"}
    )


class FakeBackend:
    """In-memory backend that records every write."""

    def __init__(
        self,
        recipes: Iterable[dict] = (PHO_BO, PHO_GA, RETIRED),
        steps: Optional[Dict[int, List[dict]]] = None,
        tasks: Iterable[dict] = ROBOT_TASKS,
        orders: Iterable[OrderApiModel] = (),
        cancelled: Iterable[int] = (),
    ) -> None:
        self.recipes = [RecipeApiModel.model_validate(r) for r in recipes]
        raw_steps = steps if steps is not None else {2: PHO_BO_STEPS, 6: PHO_GA_STEPS}
        self.steps = {rid: [RecipeStepApiModel.model_validate(s) for s in items] for rid, items in raw_steps.items()}
        self.tasks = [RobotStepApiModel.model_validate(t) for t in tasks]
        self.orders = deque(orders)
        self.cancelled = set(cancelled)

        self.calls: Counter = Counter()
        self.status_pushes: List[tuple] = []
        self.logs: List = []

        self.recipe_failures = 0
        self.failing_statuses: set = set()
        self.order_error: Optional[Exception] = None

    async def fetch_all_recipes(self):
        self.calls["recipes"] += 1
        if self.recipe_failures:
            self.recipe_failures -= 1
            raise TransientBackendError("recipes unavailable", status_code=503)
        return list(self.recipes)

    async def fetch_recipe_steps(self, recipe_id: int):
        self.calls["steps"] += 1
        return list(self.steps.get(recipe_id, []))

    async def fetch_all_robot_step_tasks(self):
        self.calls["tasks"] += 1
        return list(self.tasks)

    async def fetch_next_order(self):
        self.calls["next_order"] += 1
        if self.order_error is not None:
            raise self.order_error
        return self.orders.popleft() if self.orders else None

    async def is_order_cancelled(self, order_id: int) -> bool:
        self.calls["check_cancelled"] += 1
        return order_id in self.cancelled

    async def push_order_status(self, order_id: int, status: str) -> None:
        self.calls["push_status"] += 1
        if status in self.failing_statuses:
            raise TransientBackendError(f"cannot set {status}", status_code=500)
        self.status_pushes.append((order_id, status))

    async def submit_operation_log(self, request) -> None:
        self.calls["submit_log"] += 1
        self.logs.append(request)


class FlakyArm(SimulatedArm):
    """Arm whose gripper jams on every close."""

    async def close_gripper(self) -> None:
        self.history.append(("close_gripper", "jammed"))
        raise RuntimeError("gripper jammed")


class GatedArm(SimulatedArm):
    """Arm whose ingredient transfer blocks until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__(time_scale=0.0, rng=np.random.default_rng(0))
        self.release = asyncio.Event()
        self.waiting = asyncio.Event()

    async def transfer_ingredient(self, ingredient: str) -> None:
        self.history.append(("transfer_ingredient", ingredient))
        self.waiting.set()
        await self.release.wait()


@pytest.fixture
def fast_cfg() -> MainConfig:
    return MainConfig(
        api=ApiConfig(settings=ApiSettings(max_retries=3, initial_retry_delay_ms=1000, poll_interval_seconds=0.01)),
        execution=ExecutionConfig(
            ingredient_pause_s=0.0, repeat_pause_s=0.0, default_step_duration_s=5.0, move_delay_factor=0.0
        ),
        monitor=MonitorConfig(check_interval_ms=1, max_wait_ms=2000, progress_interval_ms=5),
        seed=11,
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def arm() -> SimulatedArm:
    return SimulatedArm(time_scale=0.0, rng=np.random.default_rng(0))
