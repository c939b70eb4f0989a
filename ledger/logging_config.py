"""
Structured logging configuration.

Called from create_app() and from the scheduler / worker entry points.
Supports text (human-readable) and JSON formats via LOG_FORMAT; LOG_LEVEL
defaults to INFO. Explicit arguments win over the environment.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter for production log aggregators."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        # logger.info(..., extra={'context': {...}}) attaches structured fields
        context = getattr(record, 'context', None)
        if context:
            entry['context'] = context
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


TEXT_FORMAT = '[%(asctime)s] %(levelname)s %(name)s — %(message)s'

# Third-party loggers that are noisy at INFO
_NOISY_LOGGERS = [
    'urllib3',
    'apscheduler',
    'rq.worker',
    'sqlalchemy.engine',
]


def configure_logging(app=None, level=None, log_format=None):
    """
    Set up root logger with format/level from args or env vars.

    Environment variables:
        LOG_LEVEL  — Python log level name (default: INFO)
        LOG_FORMAT — "text" (default) or "json"
    """
    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    resolved_level = getattr(logging, level_name, logging.INFO)
    if not isinstance(resolved_level, int):
        resolved_level = logging.INFO

    fmt = (log_format or os.getenv('LOG_FORMAT', 'text')).lower()

    root = logging.getLogger()
    root.setLevel(resolved_level)

    # Remove any existing handlers to avoid duplicates on re-init
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(resolved_level)

    if fmt == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.handlers.clear()
        app.logger.propagate = True
