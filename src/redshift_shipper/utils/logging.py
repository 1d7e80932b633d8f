"""
structlog setup for redshift_shipper.

Components ask for loggers with ``get_logger(__name__, **context)`` and never
configure anything themselves. The process that owns the output instance
(the CLI here, or whatever host embeds the output) calls
``configure_logging()`` once.

Every event is rendered as one JSON object per line on stdout, and optionally
to a file rotated at midnight. Keys that look like credentials (password,
secret, sec_key, token, api_key, credentials) are masked before rendering, so
settings dumps and error contexts can be logged as they are.

Usage:
    >>> from redshift_shipper.utils.logging import configure_logging, get_logger
    >>> configure_logging("DEBUG", log_to_file=True)
    >>> logger = get_logger(__name__, table="access_log")
    >>> logger.info("flush.completed", rows=120)
"""

import logging
import re
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional, Union

import structlog
from structlog.types import EventDict, Processor

SENSITIVE_KEY = re.compile(
    r"password|secret|sec_key|token|api_key|credentials", re.IGNORECASE
)

REDACTED_VALUE = "[REDACTED]"

LOG_FILE_PREFIX = "redshift-shipper"
LOG_FILE_RETENTION_DAYS = 30

# Handlers owned by configure_logging; replaced on every call
_installed_handlers: list[logging.Handler] = []


def sanitize_for_logging(data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Copy ``data`` with credential-like values replaced by ``[REDACTED]``.

    Key matching is a case-insensitive substring search, applied to nested
    mappings as well. The input is not modified.

    Example:
        >>> sanitize_for_logging({"aws_sec_key": "abc", "db": {"password": "x"}})
        {'aws_sec_key': '[REDACTED]', 'db': {'password': '[REDACTED]'}}
    """
    clean: Dict[str, Any] = {}
    for key, value in data.items():
        if SENSITIVE_KEY.search(str(key)):
            clean[key] = REDACTED_VALUE
        elif isinstance(value, Mapping):
            clean[key] = sanitize_for_logging(value)
        else:
            clean[key] = value
    return clean


def sanitization_processor(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> MutableMapping[str, Any]:
    return sanitize_for_logging(event_dict)


def _level_number(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


def _log_file_path(log_file_dir: Union[str, Path]) -> Path:
    directory = Path(log_file_dir)
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{LOG_FILE_PREFIX}-{datetime.now():%Y%m%d}.log"


def _install_handler(root: logging.Logger, handler: logging.Handler, level: int):
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    _installed_handlers.append(handler)


def configure_logging(
    level: Union[str, int] = "INFO",
    log_to_file: bool = False,
    log_file_dir: Union[str, Path] = "logs",
) -> None:
    """
    Route structlog through stdlib logging with JSON output.

    Args:
        level: Level name or number; unknown names fall back to INFO
        log_to_file: Also write ``redshift-shipper-YYYYMMDD.log`` files
        log_file_dir: Directory for the log files, created if missing

    Handlers installed by an earlier call are removed first. Handlers that
    other code attached to the root logger are left alone.
    """
    log_level = _level_number(level)

    root = logging.getLogger()
    while _installed_handlers:
        old = _installed_handlers.pop()
        root.removeHandler(old)
        old.close()
    root.setLevel(log_level)

    _install_handler(root, logging.StreamHandler(), log_level)
    if log_to_file:
        _install_handler(
            root,
            TimedRotatingFileHandler(
                filename=str(_log_file_path(log_file_dir)),
                when="midnight",
                backupCount=LOG_FILE_RETENTION_DAYS,
                encoding="utf-8",
            ),
            log_level,
        )

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        sanitization_processor,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None, **context: Any) -> Any:
    """
    Logger for ``name`` with ``context`` bound to every event.

    Example:
        >>> log = get_logger(__name__, table="access_log", log_suffix="[w1]")
        >>> log.warning("redshift.table.missing")
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger
