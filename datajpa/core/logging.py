import logging
import sys
from typing import List, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

ROOT_LOGGER_NAME = "datajpa"


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name when writing to a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: Optional[str] = None, use_colors: bool = True):
        super().__init__(fmt or DEFAULT_FORMAT)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)

        original = record.levelname
        color = self.COLORS.get(original)
        if color:
            record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def configure_logging(
    level: str = "INFO",
    fmt: Optional[str] = None,
    custom_formatter: Optional[logging.Formatter] = None,
    custom_handlers: Optional[List[logging.Handler]] = None,
    sqlalchemy_level: Optional[str] = None,
) -> None:
    """
    Configure root logging.

    Existing root handlers are replaced. When custom handlers are given they
    are used as-is (their own formatters win unless a custom formatter is
    also supplied); otherwise a single stdout handler is installed.

    Args:
        level: Root log level name
        fmt: Format string for the default formatter
        custom_formatter: Formatter applied to every installed handler
        custom_handlers: Handlers to install instead of the default one
        sqlalchemy_level: Optional level for the sqlalchemy.engine logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    if custom_handlers:
        handlers = list(custom_handlers)
    else:
        handlers = [logging.StreamHandler(sys.stdout)]

    for handler in handlers:
        if custom_formatter is not None:
            handler.setFormatter(custom_formatter)
        elif handler.formatter is None:
            handler.setFormatter(
                ColoredFormatter(fmt, use_colors=_is_tty(handler))
            )
        root_logger.addHandler(handler)

    if sqlalchemy_level:
        logging.getLogger("sqlalchemy.engine").setLevel(
            getattr(logging, sqlalchemy_level.upper(), logging.WARNING)
        )


def configure_logging_from_config(config=None) -> None:
    """Configure logging from the logging.* configuration keys."""
    if config is None:
        from datajpa.config.properties import get_config

        config = get_config()

    configure_logging(
        level=config.get("logging.level", "INFO"),
        fmt=config.get("logging.format", DEFAULT_FORMAT),
        sqlalchemy_level=config.get("logging.sqlalchemy"),
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the datajpa namespace."""
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def _is_tty(handler: logging.Handler) -> bool:
    stream = getattr(handler, "stream", None)
    return bool(stream is not None and hasattr(stream, "isatty") and stream.isatty())
