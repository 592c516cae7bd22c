"""Utility modules for the acquisition pipeline.

Provides:
- Structured logging configuration
- Playback progress logging
"""

from .logging import LogContext, PlaybackLogger, configure_logging, get_logger, log_operation

__all__ = [
    "configure_logging",
    "get_logger",
    "LogContext",
    "log_operation",
    "PlaybackLogger",
]
