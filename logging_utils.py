#!/usr/bin/env python3
"""
Structured Logging Module
=========================
JSON-lines log formatting for machine-readable run logs.

Every record carries a correlation id so all lines of one swap attempt can
be grouped together (``set_correlation_id`` is called once per attempt).
"""

import json
import logging
import threading
import uuid
from datetime import datetime
from typing import Optional


_correlation = threading.local()


def set_correlation_id(cid: Optional[str]):
    """Set the correlation ID for the current thread."""
    _correlation.value = cid


def get_correlation_id() -> Optional[str]:
    """Get the correlation ID for the current thread."""
    return getattr(_correlation, 'value', None)


def new_correlation_id(prefix: str = "") -> str:
    """Generate and set a new correlation ID."""
    cid = f"{prefix}{uuid.uuid4().hex[:8]}"
    set_correlation_id(cid)
    return cid


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self, include_correlation_id: bool = True):
        super().__init__()
        self.include_correlation_id = include_correlation_id

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'source': {
                'file': record.filename,
                'line': record.lineno,
                'function': record.funcName
            }
        }

        if self.include_correlation_id:
            log_data['correlation_id'] = get_correlation_id()

        # Add extra fields
        if hasattr(record, 'extra'):
            log_data['extra'] = record.extra

        # Add exception info if present
        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)
