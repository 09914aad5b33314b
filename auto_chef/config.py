"""Configuration utilities for the AutoChef order engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union

import yaml


@dataclass(frozen=True)
class EndpointsConfig:
    recipes: str = "Recipe/all"
    recipe_steps: str = "recipesteps/recipe/{recipe_id}"
    robot_step_tasks: str = "robot-step-tasks"
    order_queue: str = "Order/receive-from-queue"
    order_status_update: str = "Order/update-order-status"
    order_cancellation_check: str = "Order/check-cancelled/{order_id}"
    robot_operation_logs: str = "robot-operation-logs"


@dataclass(frozen=True)
class ApiSettings:
    max_retries: int = 3
    initial_retry_delay_ms: int = 1000
    recipe_page_size: int = 20
    robot_step_tasks_page_size: int = 1000
    poll_interval_seconds: float = 5.0
    request_timeout_s: float = 10.0
    max_pages: int = 50


@dataclass(frozen=True)
class ApiConfig:
    base_url: str = "https://autochefsystem.azurewebsites.net/api"
    endpoints: EndpointsConfig = field(default_factory=EndpointsConfig)
    settings: ApiSettings = field(default_factory=ApiSettings)

    def url(self, endpoint: str, **params: object) -> str:
        return f"{self.base_url.rstrip('/')}/{endpoint.format(**params).lstrip('/')}"


@dataclass(frozen=True)
class ExecutionConfig:
    ingredient_pause_s: float = 2.5
    repeat_pause_s: float = 0.2
    default_step_duration_s: float = 5.0
    move_delay_factor: float = 1.0


@dataclass(frozen=True)
class MonitorConfig:
    check_interval_ms: int = 500
    max_wait_ms: int = 180_000
    progress_interval_ms: int = 5_000


def _section(data: Dict[str, object], key: str) -> Dict[str, object]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Expected mapping for '{key}', got {value!r}")
    return value


@dataclass(frozen=True)
class MainConfig:
    api: ApiConfig = field(default_factory=ApiConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    robot_id: int = 1
    use_random_recipe: bool = False
    max_console_lines: int = 100
    seed: int = 7

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "MainConfig":
        api = _section(data, "api")
        endpoints = _section(api, "endpoints")
        settings = _section(api, "settings")
        execution = _section(data, "execution")
        monitor = _section(data, "monitor")

        default_api = ApiConfig()
        default_settings = ApiSettings()
        default_exec = ExecutionConfig()
        default_monitor = MonitorConfig()

        cfg = cls(
            api=ApiConfig(
                base_url=str(api.get("base_url", default_api.base_url)),
                endpoints=EndpointsConfig(**{k: str(v) for k, v in endpoints.items()}),
                settings=ApiSettings(
                    max_retries=int(settings.get("max_retries", default_settings.max_retries)),
                    initial_retry_delay_ms=int(settings.get("initial_retry_delay_ms", default_settings.initial_retry_delay_ms)),
                    recipe_page_size=int(settings.get("recipe_page_size", default_settings.recipe_page_size)),
                    robot_step_tasks_page_size=int(
                        settings.get("robot_step_tasks_page_size", default_settings.robot_step_tasks_page_size)
                    ),
                    poll_interval_seconds=float(settings.get("poll_interval_seconds", default_settings.poll_interval_seconds)),
                    request_timeout_s=float(settings.get("request_timeout_s", default_settings.request_timeout_s)),
                    max_pages=int(settings.get("max_pages", default_settings.max_pages)),
                ),
            ),
            execution=ExecutionConfig(
                ingredient_pause_s=float(execution.get("ingredient_pause_s", default_exec.ingredient_pause_s)),
                repeat_pause_s=float(execution.get("repeat_pause_s", default_exec.repeat_pause_s)),
                default_step_duration_s=float(execution.get("default_step_duration_s", default_exec.default_step_duration_s)),
                move_delay_factor=float(execution.get("move_delay_factor", default_exec.move_delay_factor)),
            ),
            monitor=MonitorConfig(
                check_interval_ms=int(monitor.get("check_interval_ms", default_monitor.check_interval_ms)),
                max_wait_ms=int(monitor.get("max_wait_ms", default_monitor.max_wait_ms)),
                progress_interval_ms=int(monitor.get("progress_interval_ms", default_monitor.progress_interval_ms)),
            ),
            robot_id=int(data.get("robot_id", 1)),
            use_random_recipe=bool(data.get("use_random_recipe", False)),
            max_console_lines=int(data.get("max_console_lines", 100)),
            seed=int(data.get("seed", 7)),
        )
        cfg.validate()
        return cfg

    def validate(self) -> None:
        settings = self.api.settings
        if settings.max_retries < 1:
            raise ValueError("api.settings.max_retries must be >= 1")
        if settings.initial_retry_delay_ms < 0:
            raise ValueError("api.settings.initial_retry_delay_ms must be >= 0")
        if settings.recipe_page_size < 1 or settings.robot_step_tasks_page_size < 1:
            raise ValueError("Page sizes must be positive")
        if settings.poll_interval_seconds <= 0:
            raise ValueError("api.settings.poll_interval_seconds must be positive")
        if self.monitor.check_interval_ms <= 0 or self.monitor.max_wait_ms <= 0:
            raise ValueError("Monitor intervals must be positive")
        if "{recipe_id}" not in self.api.endpoints.recipe_steps:
            raise ValueError("api.endpoints.recipe_steps needs a {recipe_id} placeholder")
        if "{order_id}" not in self.api.endpoints.order_cancellation_check:
            raise ValueError("api.endpoints.order_cancellation_check needs an {order_id} placeholder")


def load_main_config(path: Union[str, Path], overrides: Optional[Dict[str, str]] = None) -> MainConfig:
    """Load the engine configuration from a YAML file."""
    path = Path(path)
    with path.open("r", encoding="utf-8") as stream:
        data = yaml.safe_load(stream) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected YAML mapping at root of {path}")
    if overrides:
        _apply_overrides(data, overrides)
    return MainConfig.from_dict(data)


def _apply_overrides(root: Dict[str, object], overrides: Dict[str, str]) -> None:
    for dotted_key, raw_value in overrides.items():
        keys = dotted_key.split(".")
        target = root
        for key in keys[:-1]:
            if key not in target or not isinstance(target[key], dict):
                target[key] = {}
            target = target[key]  # type: ignore[assignment]
        target[keys[-1]] = _parse_override_value(raw_value)


def _parse_override_value(raw: str) -> object:
    lowered = raw.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    try:
        if "." in raw or "e" in lowered:
            return float(raw)
        return int(raw)
    except ValueError:
        return raw
