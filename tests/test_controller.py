"""End-to-end order lifecycle through the controller."""

from __future__ import annotations

import asyncio
import dataclasses

import pytest

from auto_chef.actuator import Actuator
from auto_chef.config import MonitorConfig
from auto_chef.errors import OrderAlreadyInFlight, TransientBackendError
from auto_chef.orchestrator import SingleFlight
from auto_chef.rc_types import ActuatorStatus, OrderOutcome, OrderStatus
from auto_chef.service import AutoChefService

from conftest import PHO_BO, FakeBackend, GatedArm, make_order


async def _service(cfg, backend, arm=None) -> AutoChefService:
    service = AutoChefService.from_config(cfg, backend=backend, arm=arm)
    await service.catalog.load_catalog()
    return service


class FailingActuator(Actuator):
    def __init__(self) -> None:
        self.status = ActuatorStatus.WAITING
        self.aborted = False

    async def dispatch(self, context, ingredients) -> None:
        self.status = ActuatorStatus.FAILED

    def is_busy(self) -> bool:
        return False

    def get_status(self) -> ActuatorStatus:
        return self.status

    def get_log(self) -> str:
        raise RuntimeError("log store offline")

    def clear_log(self) -> None:
        pass

    async def abort(self) -> None:
        self.aborted = True


@pytest.mark.asyncio
async def test_pho_bo_order_completes_with_five_ingredient_sections(fast_cfg, arm) -> None:
    backend = FakeBackend(recipes=[PHO_BO], steps={}, tasks=())
    service = await _service(fast_cfg, backend, arm)

    report = await service.controller.process(make_order(101, recipe_id=2))

    assert report.outcome == OrderOutcome.COMPLETED
    assert report.pushed_status == OrderStatus.COMPLETED
    assert backend.status_pushes == [(101, "Processing"), (101, "Completed")]

    (submitted,) = backend.logs
    assert submitted.order_id == 101
    assert submitted.robot_id == 1
    assert submitted.completion_status == "Completed"
    assert submitted.start_time <= submitted.end_time

    lines = submitted.operation_log.rstrip("\n").split("\n")
    assert lines[0] == "Robot #1 processing Order #101 (Phở bò):"
    assert lines[1:6] == [
        f"- Task {i}: Processing {name} (default operations) [Success] - 5s"
        for i, name in enumerate(["Bánh phở", "thịt bò", "hành", "rau thơm", "nước dùng"], start=1)
    ]
    assert lines[6].startswith("Order #101 completed in ")
    assert lines[6].endswith("[Success]")
    assert report.operation_log == submitted.operation_log
    assert not service.controller.is_busy


@pytest.mark.asyncio
async def test_order_runs_resolved_operations(fast_cfg, backend, arm) -> None:
    service = await _service(fast_cfg, backend, arm)

    report = await service.controller.process(make_order(101, recipe_id=2))

    assert report.outcome == OrderOutcome.COMPLETED
    log = report.operation_log
    assert "- Task 1: Move arm to noodle station [Success]" in log
    assert "- Task 5: Processing hành (default operations) [Success] - 5s" in log
    assert "- Task 8: Đặt rau thơm (3/3) [Success]" in log
    assert "- Task 9: Pour broth [Success]" in log
    assert "Task 10" not in log


@pytest.mark.asyncio
async def test_second_order_is_refused_while_first_is_in_flight(fast_cfg, backend) -> None:
    arm = GatedArm()
    service = await _service(fast_cfg, backend, arm)
    controller = service.controller

    first = asyncio.create_task(controller.process(make_order(101)))
    await asyncio.wait_for(arm.waiting.wait(), timeout=2)
    assert controller.is_busy
    assert controller.current_order.order_id == 101

    refused = await controller.process(make_order(102))
    assert refused.outcome == OrderOutcome.REFUSED
    assert refused.error_kind == "OrderAlreadyInFlight"
    assert all(order_id == 101 for order_id, _ in backend.status_pushes)

    arm.release.set()
    report = await asyncio.wait_for(first, timeout=5)
    assert report.outcome == OrderOutcome.COMPLETED
    assert controller.flight.release_count == 1
    assert not controller.is_busy


@pytest.mark.asyncio
async def test_processing_push_failure_fails_order_without_dispatch(fast_cfg, backend, arm) -> None:
    backend.failing_statuses = {"Processing"}
    service = await _service(fast_cfg, backend, arm)

    report = await service.controller.process(make_order(101))

    assert report.outcome == OrderOutcome.FAILED
    assert report.error_kind == "StatusPushFailed"
    assert backend.status_pushes == [(101, "Failed")]
    assert arm.history == []
    assert service.controller.flight.release_count == 1
    assert not service.controller.is_busy


@pytest.mark.asyncio
async def test_completed_push_failure_reports_failed(fast_cfg, backend, arm) -> None:
    backend.failing_statuses = {"Completed"}
    service = await _service(fast_cfg, backend, arm)

    report = await service.controller.process(make_order(101))

    assert report.outcome == OrderOutcome.FAILED
    assert report.error_kind == "StatusPushFailed"
    assert backend.status_pushes == [(101, "Processing"), (101, "Failed")]
    assert backend.logs == []


@pytest.mark.asyncio
async def test_log_submission_failure_keeps_order_completed(fast_cfg, backend, arm) -> None:
    async def reject(request) -> None:
        raise TransientBackendError("HTTP 500 from robot-operation-logs", status_code=500)

    backend.submit_operation_log = reject
    service = await _service(fast_cfg, backend, arm)

    report = await service.controller.process(make_order(101))

    assert report.outcome == OrderOutcome.COMPLETED
    assert backend.status_pushes[-1] == (101, "Completed")
    assert any("Error posting operation log" in line for line in service.board.lines())


@pytest.mark.asyncio
async def test_empty_catalog_fails_order(fast_cfg, backend, arm) -> None:
    service = await _service(fast_cfg, backend, arm)
    service.catalog.replace([], {})

    report = await service.controller.process(make_order(101))

    assert report.outcome == OrderOutcome.FAILED
    assert report.error_kind == "NoRecipesAvailable"
    assert backend.status_pushes == [(101, "Processing"), (101, "Failed")]


@pytest.mark.asyncio
async def test_unknown_recipe_falls_back_to_random_with_reason(fast_cfg, backend, arm) -> None:
    service = await _service(fast_cfg, backend, arm)

    report = await service.controller.process(make_order(101, recipe_id=999))

    assert report.outcome == OrderOutcome.COMPLETED
    assert report.recipe_id in (2, 6)
    assert any("RecipeId 999 not found among 2 loaded recipes" in line for line in service.board.lines())


@pytest.mark.asyncio
async def test_random_mode_ignores_requested_recipe(fast_cfg, backend, arm) -> None:
    service = await _service(dataclasses.replace(fast_cfg, use_random_recipe=True), backend, arm)

    recipe, reason = service.controller.select_recipe(make_order(101, recipe_id=2))

    assert recipe.recipe_id in (2, 6)
    assert "Random recipe enabled" in reason


@pytest.mark.asyncio
async def test_timeout_fails_order_and_keeps_partial_log(fast_cfg, backend) -> None:
    cfg = dataclasses.replace(fast_cfg, monitor=MonitorConfig(check_interval_ms=1, max_wait_ms=20, progress_interval_ms=5))
    arm = GatedArm()
    service = await _service(cfg, backend, arm)

    report = await service.controller.process(make_order(101))

    assert report.outcome == OrderOutcome.TIMED_OUT
    assert report.error_kind == "TimedOut"
    assert report.pushed_status == OrderStatus.FAILED
    assert backend.status_pushes == [(101, "Processing"), (101, "Failed")]
    assert "- Task 1: Move arm to noodle station [Success]" in report.operation_log
    assert "completed in" not in report.operation_log
    assert backend.logs == []
    assert not service.actuator.is_busy()
    assert not service.controller.is_busy


@pytest.mark.asyncio
async def test_shutdown_while_cooking_cancels_without_status_push(fast_cfg, backend) -> None:
    arm = GatedArm()
    service = await _service(fast_cfg, backend, arm)

    task = asyncio.create_task(service.controller.process(make_order(101)))
    await asyncio.wait_for(arm.waiting.wait(), timeout=2)
    service.stop()
    report = await asyncio.wait_for(task, timeout=2)

    assert report.outcome == OrderOutcome.CANCELLED
    assert report.pushed_status is None
    assert backend.status_pushes == [(101, "Processing")]
    assert not service.actuator.is_busy()


@pytest.mark.asyncio
async def test_actuator_failure_fails_order(fast_cfg, backend) -> None:
    service = await _service(fast_cfg, backend)
    actuator = FailingActuator()
    service.controller.actuator = actuator

    report = await service.controller.process(make_order(101))

    assert report.outcome == OrderOutcome.FAILED
    assert report.error_kind == "ActuatorFailed"
    assert report.operation_log == "Log unavailable"
    assert backend.status_pushes == [(101, "Processing"), (101, "Failed")]


def test_claim_release_is_idempotent() -> None:
    flight = SingleFlight()
    claim = flight.try_claim(make_order(1))
    assert flight.try_claim(make_order(2)) is None

    assert claim.release() is True
    assert claim.release() is False
    assert flight.release_count == 1

    second = flight.try_claim(make_order(2))
    with second:
        assert flight.active is second
    assert flight.active is None
    assert flight.release_count == 2


@pytest.mark.asyncio
async def test_order_failing_before_dispatch_does_not_inherit_previous_log(fast_cfg, backend, arm) -> None:
    service = await _service(fast_cfg, backend, arm)
    first = await service.controller.process(make_order(101))
    assert "Order #101" in first.operation_log

    backend.failing_statuses = {"Processing"}
    second = await service.controller.process(make_order(102))

    assert second.outcome == OrderOutcome.FAILED
    assert second.error_kind == "StatusPushFailed"
    assert second.operation_log == ""
    assert service.actuator.get_log() == ""


@pytest.mark.asyncio
async def test_empty_catalog_after_completed_order_reports_no_log(fast_cfg, backend, arm) -> None:
    service = await _service(fast_cfg, backend, arm)
    await service.controller.process(make_order(101))
    service.catalog.replace([], {})

    report = await service.controller.process(make_order(102))

    assert report.error_kind == "NoRecipesAvailable"
    assert "Order #101" not in report.operation_log


def test_claim_raises_while_slot_is_held() -> None:
    flight = SingleFlight()
    with flight.claim(make_order(1)):
        with pytest.raises(OrderAlreadyInFlight, match="Order 1 is still processing"):
            flight.claim(make_order(2))
    assert flight.claim(make_order(2)).order.order_id == 2
