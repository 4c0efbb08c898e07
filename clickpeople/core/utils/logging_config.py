"""
Logging setup for Click People.

Production (PRODUCTION=true) writes one JSON object per line; anywhere else
the output is a colored, human-readable line. Context such as request_id or
step_id travels on `record.extra` and is rendered by both formatters.
"""

import os
import sys
import json
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return getattr(record, 'extra', None) or {}


class JSONFormatter(logging.Formatter):
    """One JSON document per record, context fields merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
            **_context(record),
        }
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """`[HH:MM:SS] LEVEL module:line message | key=value` for terminals."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        color = self.COLORS.get(level)
        if color:
            level = f'{color}{level:8}{self.RESET}'
        else:
            level = f'{level:8}'

        where = f'{record.module}:{record.lineno}'
        parts = [f'[{datetime.now():%H:%M:%S}] {level} {where:30} {record.getMessage()}']
        parts.extend(f'{k}={v}' for k, v in _context(record).items())
        line = ' | '.join(parts)

        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = 'INFO',
    json_format: Optional[bool] = None,
    logger_name: str = 'clickpeople'
) -> logging.Logger:
    """Install a single stdout handler on `logger_name` and return the logger.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL (unknown names mean INFO).
        json_format: Force JSON on or off; by default it follows PRODUCTION.
        logger_name: Root of the logger tree to configure.
    """
    if json_format is None:
        json_format = os.environ.get('PRODUCTION', '').lower() == 'true'

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter() if json_format else DevelopmentFormatter())

    logger = logging.getLogger(logger_name)
    logger.setLevel(numeric_level)
    logger.handlers = [handler]
    logger.propagate = False
    return logger


def log_with_context(logger: logging.Logger, level: int, message: str, **context):
    """Emit `message` with `context` attached to that one record."""
    if logger.isEnabledFor(level):
        record = logger.makeRecord(logger.name, level, '', 0, message, (), None)
        record.extra = context
        logger.handle(record)
