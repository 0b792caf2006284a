"""Logging utilities module."""

import logging
import re
import sys
from functools import lru_cache
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import ClassVar

import colorama
from colorama import Fore, Style

__all__ = ["CleanFormatter", "ColorFormatter", "Logger", "get_logger"]

_QUOTED_MARKER = re.compile(r"\$\$'((?:[^']|'(?!\$\$))*)'\$\$")
_BRACED_MARKER = re.compile(r"\$\$\{(.*?)\}\$\$")
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def strip_markers(message: str) -> str:
    """Remove the ``$$'...'$$`` and ``$${...}$$`` highlight markers from a message.

    Args:
        message (str): Raw log message

    Returns:
        str: The message with markers removed and their content preserved
    """
    message = _QUOTED_MARKER.sub(r"'\1'", message)
    return _BRACED_MARKER.sub(r"{\1}", message)


class ColorFormatter(logging.Formatter):
    """Formatter that adds terminal colors to console log messages.

    Level names are colored by severity, quoted titles (``$$'Title'$$``) are
    highlighted and braced details (``$${nid: 12}$$``) are dimmed.
    """

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": Fore.CYAN,
        "INFO": Fore.GREEN,
        "SUCCESS": Fore.GREEN + Style.BRIGHT,
        "WARNING": Fore.YELLOW,
        "ERROR": Fore.RED,
        "CRITICAL": Fore.RED + Style.BRIGHT,
    }

    def format(self, record: logging.LogRecord) -> str:
        """Formats a log record with ANSI color codes.

        Args:
            record (logging.LogRecord): Log record to format

        Returns:
            str: Color-formatted log message
        """
        orig_msg, orig_levelname = record.msg, record.levelname
        record.levelname = (
            f"{self.COLORS.get(orig_levelname, '')}{orig_levelname}{Style.RESET_ALL}"
        )
        if isinstance(record.msg, str):
            msg = _QUOTED_MARKER.sub(
                f"{Fore.LIGHTBLUE_EX}'\\1'{Style.RESET_ALL}", record.msg
            )
            record.msg = _BRACED_MARKER.sub(f"{Style.DIM}{{\\1}}{Style.RESET_ALL}", msg)

        try:
            return super().format(record)
        finally:
            record.msg, record.levelname = orig_msg, orig_levelname


class CleanFormatter(logging.Formatter):
    """Formatter that strips highlight markers, used for log files."""

    def format(self, record: logging.LogRecord) -> str:
        """Formats a log record without color markers.

        Args:
            record (logging.LogRecord): Log record to format

        Returns:
            str: Clean log message
        """
        if not isinstance(record.msg, str):
            return super().format(record)

        orig_msg = record.msg
        record.msg = strip_markers(orig_msg)
        try:
            return super().format(record)
        finally:
            record.msg = orig_msg


class Logger(logging.Logger):
    """Logger with a SUCCESS level and automatic class name prefixes."""

    SUCCESS = logging.INFO + 5

    def __init__(self, name, level=logging.NOTSET):
        """Initialize the logger and register the SUCCESS level name.

        Args:
            name (str): Logger name
            level (int, optional): Initial logging level. Defaults to NOTSET.
        """
        super().__init__(name, level)
        if logging.getLevelName(self.SUCCESS) != "SUCCESS":
            logging.addLevelName(self.SUCCESS, "SUCCESS")

    def _log(
        self,
        level,
        msg,
        args,
        exc_info=None,
        extra=None,
        stack_info=False,
        stacklevel=1,
    ):
        """Prefix messages logged from inside a method with the owning class name.

        Frame 0 is this method, frame 1 the public logging method and frame 2
        the caller whose ``self`` or ``cls`` names the class.
        """
        try:
            caller_locals = sys._getframe(2).f_locals
            owner = None
            if "self" in caller_locals and not isinstance(
                caller_locals["self"], logging.Logger
            ):
                owner = type(caller_locals["self"]).__name__
            elif isinstance(caller_locals.get("cls"), type):
                owner = caller_locals["cls"].__name__

            if owner and isinstance(msg, str):
                msg = f"{owner}: {msg}"
        except (ValueError, KeyError, AttributeError):
            pass

        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )

    def success(self, msg, *args, **kwargs):
        """Log a message with SUCCESS level.

        Args:
            msg: Message to log
            *args: Variable length argument list
            **kwargs: Arbitrary keyword arguments
        """
        self.log(self.SUCCESS, msg, *args, **kwargs)

    def resolve_level(self, log_level: str) -> int:
        """Translate a level name, including SUCCESS, to its numeric value."""
        if log_level.upper() == "SUCCESS":
            return self.SUCCESS
        return logging.getLevelNamesMapping()[log_level.upper()]

    def setup(self, log_level: str, log_dir: str | None = None) -> None:
        """Attach a console handler and, optionally, a rotating file handler.

        Args:
            log_level (str): Logging level ('DEBUG', 'INFO', 'SUCCESS', etc.)
            log_dir (str | None, optional): Directory where log files will be stored.
        """
        from drupal2wp.utils.terminal import supports_color

        use_color = supports_color()
        if use_color:
            colorama.just_fix_windows_console()

        level = self.resolve_level(log_level)
        self.setLevel(level)
        for handler in list(self.handlers):
            self.removeHandler(handler)

        if level <= logging.DEBUG:
            log_format = (
                "%(asctime)s - %(name)s - %(levelname)s\t%(filename)s:%(lineno)d\t"
                "%(message)s"
            )
        else:
            log_format = "%(asctime)s - %(name)s - %(levelname)s\t%(message)s"

        if log_dir is not None:
            log_path = Path(log_dir)
            log_path.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_path / f"{self.name}.{log_level.upper()}.log",
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
            file_handler.setFormatter(CleanFormatter(log_format, datefmt=_DATE_FORMAT))
            file_handler.setLevel(level)
            self.addHandler(file_handler)

        formatter_cls = ColorFormatter if use_color else CleanFormatter
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter_cls(log_format, datefmt=_DATE_FORMAT))
        console_handler.setLevel(level)
        self.addHandler(console_handler)


logging.setLoggerClass(Logger)


def _get_logger(
    log_name: str, log_level: str = "INFO", log_dir: str | Path | None = None
) -> Logger:
    """Get a configured instance of Logger.

    Args:
        log_name (str): Name of the logger and base name for log file.
        log_level (str): Logging level. Defaults to "INFO".
        log_dir (str | Path | None): Directory where log files will be stored.

    Returns:
        Logger: Configured logger instance
    """
    logger = logging.getLogger(log_name)
    if not isinstance(logger, Logger):
        logger = Logger(log_name)
    logger.setup(log_level, str(log_dir) if log_dir is not None else None)
    return logger


@lru_cache(maxsize=1)
def get_logger() -> Logger:
    """Get the main migration logger, configured from the application settings.

    Returns:
        Logger: Main application logger instance
    """
    from drupal2wp.config.settings import get_config

    config = get_config()
    return _get_logger(
        log_name="drupal2wp",
        log_level=str(config.log_level),
        log_dir=config.data_path / "logs",
    )
