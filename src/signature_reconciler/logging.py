"""
Structured logging configuration for the signature reconciler.

Every reconcile call runs inside ``logging_context``, which binds the trace
id, agreement id and acting role through structlog's contextvars so that
repository, client and materializer events carry them without threading a
logger through each call. ``ReconcileTimer`` collects the numbers the engine
attaches to its terminal ``engine.pending`` / ``engine.complete`` event.
"""

import logging
import sys
import time
from contextlib import contextmanager
from typing import Any, Generator

import structlog
from structlog.types import Processor

from .config import config


def configure_logging(
    json_output: bool = False,
    log_level: str | None = None,
) -> None:
    """
    Configure structlog for the application.

    Args:
        json_output: JSON lines (production) instead of the console renderer
        log_level: Override log level (defaults to config.LOG_LEVEL)
    """
    level = log_level or config.LOG_LEVEL
    level_num = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format='%(message)s',
        stream=sys.stdout,
        level=level_num,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt='iso', utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def logging_context(
    trace_id: str | None = None,
    agreement_id: str | None = None,
    role: str | None = None,
) -> Generator[None, None, None]:
    """
    Bind reconcile identifiers for the duration of the block.

    None values are not bound, so a nested context only overrides what it
    names. Fields passed explicitly on a log call win over bound ones.

    Usage:
        with logging_context(agreement_id="agr_1", role="investor"):
            logger.info("engine.started")  # carries agreement_id and role
    """
    bound = {
        key: value
        for key, value in (
            ('trace_id', trace_id),
            ('agreement_id', agreement_id),
            ('role', role),
        )
        if value is not None
    }
    with structlog.contextvars.bound_contextvars(**bound):
        yield


class ReconcileTimer:
    """
    Stage timings and counters for one reconcile call.

    Usage:
        timer = ReconcileTimer()
        with timer.stage("poll"):
            timer.count("poll_attempts")
        logger.info("engine.complete", **timer.event_fields())
        # -> duration_ms, poll_ms, poll_attempts
    """

    def __init__(self):
        self.start_time = time.perf_counter()
        self.stages: dict[str, float] = {}
        self.counts: dict[str, int] = {}

    @contextmanager
    def stage(self, name: str) -> Generator[None, None, None]:
        """Time a stage; a stage entered twice accumulates."""
        started = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            self.stages[name] = self.stages.get(name, 0.0) + elapsed_ms

    def count(self, name: str, n: int = 1) -> None:
        self.counts[name] = self.counts.get(name, 0) + n

    @property
    def duration_ms(self) -> float:
        return (time.perf_counter() - self.start_time) * 1000

    def event_fields(self) -> dict[str, Any]:
        """Flat fields for the terminal log event."""
        fields: dict[str, Any] = {'duration_ms': round(self.duration_ms, 2)}
        for name, ms in self.stages.items():
            fields[f'{name}_ms'] = round(ms, 2)
        fields.update(self.counts)
        return fields


# Development mode by default; the API lifespan switches to JSON in production
configure_logging(json_output=False)
