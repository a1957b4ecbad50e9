from __future__ import annotations

import logging
import sys
import time
import uuid
from dataclasses import dataclass, field


_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(level: str | int = logging.INFO) -> None:
    """Configure root logging once for the service process."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    formatter = logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class _RequestAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return f"[{self.extra['request_id']} {self.extra['domain']}] {msg}", kwargs


@dataclass
class RequestContext:
    """Per-request state handed explicitly through one analysis."""

    domain: str
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started: float = field(default_factory=time.perf_counter)
    timings: dict[str, int] = field(default_factory=dict)
    logger: logging.LoggerAdapter = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.logger = _RequestAdapter(
            logging.getLogger("certscope_agent.request"),
            {"request_id": self.request_id, "domain": self.domain},
        )

    def elapsed_s(self) -> float:
        return time.perf_counter() - self.started

    def record(self, name: str, start: float) -> None:
        self.timings[name] = int((time.perf_counter() - start) * 1000)
