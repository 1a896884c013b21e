"""
Logging setup for Pattern Scanner.

The engines never attach handlers; each one asks for a module logger with
`logging.getLogger(__name__)` and logs pivot, cluster and candidate counts at
DEBUG, the final verdict at INFO. Whatever embeds the scanner (a runner, a
notebook, a service) calls `setup_logging` or `configure_default_logging` once.

Environment variables read by `LogSettings.from_env`:
    LOG_LEVEL    level name, default INFO
    LOG_FILE     log file path, default logs/pattern_scanner.log
    LOG_JSON     "true" for JSON lines
    LOG_CONSOLE  "false" to silence stdout
"""

import logging
import logging.handlers
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

DEFAULT_LOG_FILE = "logs/pattern_scanner.log"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUPS = 5

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"
JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
    '"location": "%(module)s:%(funcName)s:%(lineno)d", "message": "%(message)s"}'
)
JSON_DATEFMT = "%Y-%m-%dT%H:%M:%S"

LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}
RESET = "\033[0m"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def resolve_level(level: Optional[str]) -> int:
    """Level name to logging constant; unknown names mean INFO."""
    if not level:
        return logging.INFO
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


@dataclass
class LogSettings:
    """Where and how scanner logs are written."""

    level: str = "INFO"
    log_file: Optional[str] = None
    console: bool = True
    json_format: bool = False
    rotation: bool = True
    max_bytes: int = DEFAULT_MAX_BYTES
    backup_count: int = DEFAULT_BACKUPS

    @classmethod
    def from_env(cls, default_file: Optional[str] = DEFAULT_LOG_FILE) -> "LogSettings":
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE", default_file),
            console=_env_flag("LOG_CONSOLE", True),
            json_format=_env_flag("LOG_JSON", False),
        )

    @property
    def formats(self) -> Tuple[str, str]:
        if self.json_format:
            return JSON_FORMAT, JSON_DATEFMT
        return TEXT_FORMAT, TEXT_DATEFMT


class ColoredFormatter(logging.Formatter):
    """Paints the level name for terminals; the record itself is left untouched."""

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)
        plain = record.levelname
        record.levelname = f"{color}{plain}{RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


def _console_handler(settings: LogSettings) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    fmt, datefmt = settings.formats
    # JSON consumers don't want escape codes
    formatter_cls = logging.Formatter if settings.json_format else ColoredFormatter
    handler.setFormatter(formatter_cls(fmt, datefmt))
    return handler


def _file_handler(settings: LogSettings) -> logging.Handler:
    path = Path(settings.log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    if settings.rotation:
        handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=settings.max_bytes, backupCount=settings.backup_count, encoding="utf-8"
        )
    else:
        handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(*settings.formats))
    return handler


def apply_settings(settings: LogSettings, name: Optional[str] = None) -> logging.Logger:
    """Replace the handlers of logger `name` (root when None) according to settings."""
    logger = logging.getLogger(name)
    numeric_level = resolve_level(settings.level)

    logger.handlers.clear()

    handlers = []
    if settings.console:
        handlers.append(_console_handler(settings))
    if settings.log_file:
        handlers.append(_file_handler(settings))
    for handler in handlers:
        handler.setLevel(numeric_level)
        logger.addHandler(handler)

    logger.setLevel(numeric_level)
    logger.propagate = False
    return logger


def setup_logging(
    name: Optional[str] = None,
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    console: bool = True,
    json_format: bool = False,
    rotation: bool = True,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUPS,
) -> logging.Logger:
    """
    Attach console and/or file handlers to a logger.

    `level` and `log_file` fall back to LOG_LEVEL / LOG_FILE when omitted; with
    neither given, only console output at INFO is configured.

    Example:
        >>> logger = setup_logging(name="pattern_scanner", level="DEBUG", console=True)
        >>> logger.debug("engines ready")
    """
    settings = LogSettings(
        level=level if level is not None else os.getenv("LOG_LEVEL", "INFO"),
        log_file=log_file if log_file is not None else os.getenv("LOG_FILE"),
        console=console,
        json_format=json_format,
        rotation=rotation,
        max_bytes=max_bytes,
        backup_count=backup_count,
    )
    return apply_settings(settings, name)


def get_logger(name: str) -> logging.Logger:
    """Named logger; sets up console logging first when the root has no handlers."""
    if not logging.getLogger().handlers:
        setup_logging()
    return logging.getLogger(name)


def log_exception(
    logger: logging.Logger,
    exc: Exception,
    message: str = "An exception occurred",
    level: int = logging.ERROR,
) -> None:
    """
    Log `message: exc` together with the traceback.

    Example:
        >>> try:
        ...     candles = candles_from_klines(rows)
        ... except ValueError as e:
        ...     log_exception(logger, e, "Bad kline payload")
    """
    logger.log(level, "%s: %s", message, exc, exc_info=exc)


def configure_default_logging() -> LogSettings:
    """Configure the root logger from the environment and announce the setup."""
    settings = LogSettings.from_env()
    apply_settings(settings)

    logging.getLogger("pattern_scanner").info(
        "Pattern Scanner - Logging Initialized (level=%s, file=%s, json=%s, console=%s)",
        settings.level,
        settings.log_file,
        settings.json_format,
        settings.console,
    )
    return settings
