"""Structured logging configuration for the acquisition pipeline.

Provides:
- Structured logging with structlog
- Context-aware logging
- Operation start/end logging
- Playback progress logging that never carries sensitive values
"""

import logging
import sys
from contextlib import contextmanager
from typing import Optional

import structlog


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    include_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Output logs as JSON
        include_timestamp: Include timestamps in logs
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso") if include_timestamp else structlog.processors.TimeStamper(fmt=None),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None, **context) -> structlog.BoundLogger:
    """Get a configured logger with optional context.

    Args:
        name: Logger name
        **context: Additional context to bind

    Returns:
        Configured structlog logger
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger


class LogContext:
    """Context manager for scoped logging context.

    Usage:
        with LogContext(recipe_id="usaa-checking", component="player"):
            logger.info("Replaying recipe")
    """

    def __init__(self, **context):
        self.context = context
        self._bound = False

    def __enter__(self) -> "LogContext":
        structlog.contextvars.bind_contextvars(**self.context)
        self._bound = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._bound:
            structlog.contextvars.unbind_contextvars(*self.context.keys())


@contextmanager
def log_operation(
    operation: str,
    logger: Optional[structlog.BoundLogger] = None,
    **context,
):
    """Context manager for logging operation start/end.

    Args:
        operation: Name of the operation
        logger: Optional logger to use
        **context: Additional context

    Yields:
        Dict to store operation results

    Example:
        with log_operation("scrape_transactions", url=url) as op:
            result = await scrape(automation, config)
            op["rows"] = len(result.candidates)
    """
    log = logger or get_logger()
    log = log.bind(operation=operation, **context)

    log.info(f"{operation} started")
    result = {"success": False, "error": None}

    try:
        yield result
        result["success"] = True
        log.info(f"{operation} completed", **result)
    except Exception as e:
        result["error"] = str(e)
        log.error(f"{operation} failed", **result)
        raise


class PlaybackLogger:
    """Logger specialized for recipe playback tracking.

    Step values are never logged; sensitive steps only log their label.
    """

    def __init__(self, recipe_id: str, recipe_name: str):
        self.log = get_logger().bind(
            recipe_id=recipe_id,
            recipe_name=recipe_name,
        )
        self.step_count = 0

    def playback_started(self, total_steps: int, start_url: str) -> None:
        self.log.info("Playback started", total_steps=total_steps, start_url=start_url)

    def playback_finished(self, status: str, duration_ms: int) -> None:
        self.log.info(
            "Playback finished",
            status=status,
            duration_ms=duration_ms,
            steps_executed=self.step_count,
        )

    def step_started(self, step_index: int, action: str, target: Optional[str] = None) -> None:
        self.step_count = step_index + 1
        self.log.debug(
            "Step started",
            step_index=step_index,
            action=action,
            target=target,
        )

    def step_completed(self, step_index: int, action: str, duration_ms: int) -> None:
        self.log.debug(
            "Step completed",
            step_index=step_index,
            action=action,
            duration_ms=duration_ms,
        )

    def step_failed(self, step_index: int, action: str, error: str) -> None:
        self.log.error(
            "Step failed",
            step_index=step_index,
            action=action,
            error=error,
        )

    def awaiting_input(self, step_index: int, label: str) -> None:
        self.log.info("Paused for sensitive input", step_index=step_index, field_label=label)
