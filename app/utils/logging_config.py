"""
Logging for the SkillBoard API.

Services attach context to records through ``extra=`` (request_id, user_id,
skill_id, endorsement_id, ...). ContextFormatter appends those attributes to
the line as key=value pairs; JsonFormatter emits them as top-level fields.
"""
import json
import logging
import logging.config
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

# Attributes every LogRecord has; anything else arrived through extra=
_STANDARD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

FORMATS = {
    "simple": "%(levelname)s - %(name)s - %(message)s",
    "detailed": "%(asctime)s | %(levelname)-8s | %(name)-40s | %(funcName)s:%(lineno)d | %(message)s",
}
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

ENVIRONMENT_PRESETS: Dict[str, Dict[str, Any]] = {
    "production": {"enable_file": True, "format_style": "json"},
    "development": {"level": "DEBUG", "enable_file": True, "format_style": "detailed"},
    "testing": {"level": "WARNING", "enable_file": False, "format_style": "simple"},
}


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """The extra= fields carried by a record"""
    return {
        key: value for key, value in vars(record).items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class ContextFormatter(logging.Formatter):

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = record_context(record)
        if not context:
            return line
        # request_id first so lines from one request are easy to grep
        request_id = context.pop("request_id", None)
        pairs = [f"request_id={request_id}"] if request_id is not None else []
        pairs += [f"{key}={value}" for key, value in sorted(context.items())]
        return f"{line} | {' '.join(pairs)}"


class JsonFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }
        payload.update(record_context(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _formatter(style: str) -> Dict[str, Any]:
    if style == "json":
        return {"()": JsonFormatter, "datefmt": DATE_FORMAT}
    return {"()": ContextFormatter, "fmt": FORMATS.get(style, FORMATS["detailed"]), "datefmt": DATE_FORMAT}


def _file_handler(path: Path, level: str) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "file",
        "filename": str(path),
        "maxBytes": MAX_LOG_BYTES,
        "backupCount": LOG_BACKUPS,
        "encoding": "utf8",
    }


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    enable_file: bool = True,
    format_style: str = "detailed"
) -> None:
    """
    Configure the root and uvicorn loggers.

    Args:
        level: Logging level name
        log_file: Main log file; defaults to LOG_DIR/skillboard_<date>.log
        enable_console: Log to stdout
        enable_file: Log to rotating files, plus a separate ERROR-only file
        format_style: 'simple', 'detailed' or 'json'. Files always use
            'json' when that style is chosen, 'detailed' otherwise.
    """
    handlers: Dict[str, Dict[str, Any]] = {}

    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "console",
            "stream": "ext://sys.stdout",
        }

    if enable_file:
        log_dir = Path(os.getenv("LOG_DIR", "logs"))
        log_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d")
        log_file = log_file or log_dir / f"skillboard_{stamp}.log"
        handlers["file"] = _file_handler(Path(log_file), level)
        handlers["error_file"] = _file_handler(log_dir / f"skillboard_errors_{stamp}.log", "ERROR")

    names = list(handlers)
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": _formatter(format_style),
            "file": _formatter("json" if format_style == "json" else "detailed"),
        },
        "handlers": handlers,
        "root": {"level": level, "handlers": names},
        "loggers": {
            # uvicorn installs its own handlers; route it through ours instead
            "uvicorn": {"level": "INFO", "handlers": names, "propagate": False},
            "uvicorn.access": {"level": "INFO", "handlers": [n for n in names if n != "error_file"], "propagate": False},
        },
    })

    get_logger("logging").info(
        "Logging configured",
        extra={"level": level, "handlers": names, "format_style": format_style}
    )


def get_logger(name: str) -> logging.Logger:
    """Logger under the skillboard namespace, usually get_logger(__name__)"""
    return logging.getLogger(f"skillboard.{name}")


def configure_for_environment() -> None:
    """Apply the preset for ENVIRONMENT; LOG_LEVEL and LOG_FORMAT override it"""
    environment = os.getenv("ENVIRONMENT", "development").lower()
    options = dict(ENVIRONMENT_PRESETS.get(environment, {}))

    if os.getenv("LOG_LEVEL") or "level" not in options:
        options["level"] = os.getenv("LOG_LEVEL", "INFO").upper()
    if os.getenv("LOG_FORMAT"):
        options["format_style"] = os.getenv("LOG_FORMAT").lower()

    setup_logging(**options)


class PerformanceMonitor:
    """Times a block and logs it, at warning level when slow or failed"""

    def __init__(self, operation_name: str, logger: logging.Logger = None, threshold_ms: float = 1000, **context):
        self.operation_name = operation_name
        self.logger = logger or get_logger("performance")
        self.threshold_ms = threshold_ms
        self.context = context
        self.start_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
        extra = {**self.context, "operation": self.operation_name, "duration_ms": duration_ms}

        if exc_type is not None:
            self.logger.warning(f"{self.operation_name} failed: {exc_val}", extra=extra)
        elif duration_ms > self.threshold_ms:
            self.logger.warning(f"{self.operation_name} exceeded {self.threshold_ms}ms", extra=extra)
        else:
            self.logger.debug(f"{self.operation_name} completed", extra=extra)
        return False
