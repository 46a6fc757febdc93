"""Console and JSON-lines logging for lifecycle runs.

Modules log through ``get_logger(__name__)`` and attach gateway context with
``extra=``, e.g. ``extra={'nat_gateway_id': ..., 'operation': 'create'}``.
Both formatters pick those fields up from the record.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


CONTEXT_FIELDS = ('gateway_name', 'nat_gateway_id', 'operation', 'state', 'duration')

NOISY_LOGGERS = ('boto3', 'botocore', 'urllib3')


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Gateway context fields set on a record through ``extra=``."""
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for the run log file."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat(timespec='milliseconds')
            .replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        entry.update(record_context(record))

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Short colored lines prefixed with the gateway being worked on."""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        if self.use_color and record.levelname in self.COLORS:
            level = f"{self.COLORS[record.levelname]}{level}{self.RESET}"

        context = record_context(record)
        subject = ' '.join(
            str(context[key]) for key in ('gateway_name', 'nat_gateway_id') if key in context
        )
        message = record.getMessage()
        if subject:
            message = f"[{subject}] {message}"

        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')
        line = f"{timestamp} {level} {message}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(log_level: str = 'info', log_dir: Optional[str] = '.natgw/logs') -> None:
    """Configure the root logger for a CLI run.

    Args:
        log_level: Console level (debug, info, warning, error)
        log_dir: Directory for the daily JSON-lines file, or None for console only
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(ConsoleFormatter(use_color=sys.stderr.isatty()))
    root_logger.addHandler(console_handler)
    root_logger.setLevel(level)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(
            log_path / f"natgw-{datetime.now(timezone.utc):%Y%m%d}.jsonl"
        )
        # The file always gets debug detail
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)
        root_logger.setLevel(logging.DEBUG)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a module logger (pass ``__name__``)."""
    return logging.getLogger(name)
