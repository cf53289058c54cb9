#!/usr/bin/env python3
"""
Contextual Logger Module

Attaches key=value context (export name, export date, git step) to log
lines so a single run's output can be followed target by target.
"""

import logging
import sys
from typing import Any, Dict, Optional, TextIO

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter carrying an immutable set of context fields."""

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(logger, context or {})

    def with_context(self, **kwargs) -> 'ContextualLoggerAdapter':
        """Return a child adapter with the given fields added to the current context."""
        return ContextualLoggerAdapter(self.logger, {**self.extra, **kwargs})

    def process(self, msg, kwargs):
        kwargs.setdefault('extra', {})['_context'] = self.extra
        return msg, kwargs


class ContextualFormatter(logging.Formatter):
    """Formatter appending the record's context as [key=value, ...]."""

    def format(self, record) -> str:
        msg = super().format(record)
        context = getattr(record, '_context', {})
        if context:
            msg += " [" + ", ".join(f"{key}={value}" for key, value in context.items()) + "]"
        return msg


def setup_contextual_logger(name: str, log_level: str, stream: TextIO = sys.stdout) -> ContextualLoggerAdapter:
    """
    Setup a contextual logger writing to the given stream.

    Args:
        name: Logger name (typically __name__)
        log_level: Log level string (e.g., 'INFO', 'DEBUG')
        stream: Destination of log lines, stdout by default

    Returns:
        ContextualLoggerAdapter instance ready for use
    """
    handler = logging.StreamHandler(stream)
    handler.setFormatter(ContextualFormatter(LOG_FORMAT))

    base_logger = logging.getLogger(name)
    base_logger.setLevel(getattr(logging, log_level.upper()))
    base_logger.handlers.clear()
    base_logger.addHandler(handler)

    return ContextualLoggerAdapter(base_logger)
