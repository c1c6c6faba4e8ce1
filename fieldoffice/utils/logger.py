"""Logging setup for the portal

Console output is colored with colorlog; files rotate under the log
directory. Decision and audit records carry portal context (request id,
reviewer, actor, action) as record attributes, added through get_logger.
"""

import json
import logging
import logging.handlers
import os
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional, Tuple, Union

import colorlog

from fieldoffice.utils.constants import LOG_DIR

APP_LOGGER = 'FieldOffice'

LOG_FILES = {
    'MAIN': 'fieldoffice.log',
    'ERRORS': 'error.log'
}

ROTATION = {
    'MAX_BYTES': 10 * 1024 * 1024,
    'BACKUP_COUNT': 5
}

# Record attributes that get_logger may attach and the formatters render
CONTEXT_FIELDS = ('request_id', 'reviewer', 'actor', 'action')

def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: getattr(record, key)
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    }

class ConsoleFormatter(colorlog.ColoredFormatter):
    """Colored console lines with portal context appended in brackets"""

    def __init__(self):
        super().__init__(
            fmt='%(log_color)s%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
            log_colors={
                'DEBUG':    'cyan',
                'INFO':     'green',
                'WARNING':  'yellow',
                'ERROR':    'red',
                'CRITICAL': 'red,bg_white',
            }
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if not context:
            return line
        return f"{line} [{' '.join(f'{k}={v}' for k, v in context.items())}]"

class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shipping"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': self.formatTime(record, self.datefmt),
            'name': record.name,
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'line': record.lineno
        }
        log_data.update(record_context(record))

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)

def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=ROTATION['MAX_BYTES'],
        backupCount=ROTATION['BACKUP_COUNT'],
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler

def setup_logging(level: Optional[str] = None,
                  json_logging: bool = False,
                  log_dir: Optional[Path] = None) -> None:
    """
    Configure console and file logging for the portal

    Args:
        level: Console and app logger level, INFO when omitted
        json_logging: Write file logs as JSON lines
        log_dir: Directory for the rotating log files
    """
    log_directory = log_dir or LOG_DIR
    log_directory.mkdir(parents=True, exist_ok=True)
    effective_level = level or logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(effective_level)
    root_logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ConsoleFormatter())
    console.setLevel(effective_level)
    root_logger.addHandler(console)

    file_formatter = JSONFormatter() if json_logging else logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s'
    )
    root_logger.addHandler(_file_handler(log_directory / LOG_FILES['MAIN'], logging.DEBUG, file_formatter))
    root_logger.addHandler(_file_handler(log_directory / LOG_FILES['ERRORS'], logging.ERROR, file_formatter))

    app_logger = logging.getLogger(APP_LOGGER)
    app_logger.setLevel(effective_level)

    def log_uncaught(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        app_logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))

    sys.excepthook = log_uncaught

    app_logger.info(
        f"Logging to {log_directory} at {logging.getLevelName(app_logger.getEffectiveLevel())}"
        f"{' (JSON)' if json_logging else ''}"
    )

class ContextAdapter(logging.LoggerAdapter):
    """Attaches fixed portal context to every record it emits"""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra)
        extra.update(kwargs.get('extra') or {})
        extra.setdefault('logged_at', datetime.now(timezone.utc).isoformat())
        kwargs['extra'] = extra
        return msg, kwargs

def get_logger(name: str, **context) -> Union[logging.Logger, ContextAdapter]:
    """Child of the app logger, wrapped with context when any is given"""
    logger = logging.getLogger(f'{APP_LOGGER}.{name}')
    if context:
        return ContextAdapter(logger, context)
    return logger

def cleanup_old_logs(days: int = 30, log_dir: Optional[Path] = None) -> int:
    """Delete log files older than days; returns how many were removed"""
    cutoff = time.time() - days * 24 * 3600
    removed = 0
    try:
        for log_file in (log_dir or LOG_DIR).glob('*.log*'):
            if os.path.getmtime(log_file) <= cutoff:
                log_file.unlink()
                removed += 1
    except OSError as e:
        get_logger('cleanup').error(f"Error cleaning up logs: {e}")
    return removed
