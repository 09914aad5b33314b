from collections import OrderedDict, deque
from datetime import datetime
from pathlib import Path
from typing import Deque, List, Optional

import structlog


def reorder_keys(_, __, event_dict: dict) -> OrderedDict:
    ordered = OrderedDict()
    for key in ("timestamp", "event", "src"):
        if key in event_dict:
            ordered[key] = event_dict.pop(key)
    for key, value in event_dict.items():
        ordered[key] = value
    return ordered


def get_logger(script: str) -> structlog.BoundLogger:
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            reorder_keys,
            structlog.processors.JSONRenderer(),
        ]
    )
    return structlog.get_logger(src=Path(script).stem)


class StatusBoard:
    """Operator console: bounded timestamped lines plus a single current-status value.

    Unlike the per-order operation log, the console drops its oldest lines once
    ``max_lines`` is exceeded.
    """

    _LEVELS = ("debug", "info", "warning", "error")

    def __init__(self, max_lines: int = 100, logger: Optional[structlog.BoundLogger] = None) -> None:
        self._lines: Deque[str] = deque(maxlen=max(1, int(max_lines)))
        self._logger = logger if logger is not None else get_logger("status_board")
        self.current: str = ""

    def post(self, message: str, level: str = "info", **fields: object) -> str:
        if level not in self._LEVELS:
            raise ValueError(f"Unknown level: {level}")
        line = f"[{datetime.now():%H:%M:%S}] {message}"
        self._lines.append(line)
        self.current = message
        getattr(self._logger, level)(message, **fields)
        return line

    def lines(self) -> List[str]:
        return list(self._lines)

    def text(self) -> str:
        return "\n".join(self._lines)
