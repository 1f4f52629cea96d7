"""
Logging setup for QuoteFlow: human-readable console in development,
JSON lines on Railway, and always a rotating JSON file under DATA_DIR/logs.

Call setup_logging() once, from create_app().
"""
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone

from src.core.paths import LOG_DIR

LOG_FILENAME = "quoteflow.log"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 5

# Keys routes and workflow pass through `extra=`
EXTRA_FIELDS = ("route", "method", "status", "duration_ms", "user",
                "rfq_id", "rfq_code", "quote_id")

_NOISY_LOGGERS = ("urllib3", "werkzeug")


def _timestamp(record) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record):
        payload = {
            "ts": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        payload.update({k: getattr(record, k) for k in EXTRA_FIELDS if hasattr(record, k)})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


class HumanFormatter(logging.Formatter):
    """`12:04:31 I dashboard: GET / → 200 (12ms)`, coloured by level on a TTY."""

    _COLOURS = {"D": "\033[36m", "I": "\033[32m", "W": "\033[33m",
                "E": "\033[31m", "C": "\033[35m"}

    def __init__(self, colour=None):
        super().__init__()
        self.colour = sys.stderr.isatty() if colour is None else colour

    def format(self, record):
        level = record.levelname[:1]
        text = f"{_timestamp(record):%H:%M:%S} {level} {record.name}: {record.getMessage()}"
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        if self.colour:
            text = f"{self._COLOURS.get(level, '')}{text}\033[0m"
        return text


def _file_handler(log_dir: str):
    os.makedirs(log_dir, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, LOG_FILENAME),
        maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8")
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging(level=None, json_logs=None, log_dir=None):
    """
    Replace the root handlers with QuoteFlow's.

    level      LOG_LEVEL env or INFO
    json_logs  JSON console output; defaults to on when RAILWAY_ENVIRONMENT is set
    log_dir    where quoteflow.log rotates; defaults to DATA_DIR/logs
    """
    level = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    if json_logs is None:
        json_logs = bool(os.environ.get("RAILWAY_ENVIRONMENT"))

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    numeric = getattr(logging, level, None)
    root.setLevel(numeric if isinstance(numeric, int) else logging.INFO)

    console = logging.StreamHandler()
    console.setFormatter(JSONFormatter() if json_logs else HumanFormatter())
    root.addHandler(console)

    try:
        root.addHandler(_file_handler(log_dir or LOG_DIR))
    except OSError as e:
        logging.getLogger("quoteflow").warning("File logging disabled: %s", e)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("quoteflow").info("Logging initialized at %s (json=%s)", level, json_logs)
