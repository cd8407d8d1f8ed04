from __future__ import annotations

import logging
import sys
import warnings
from logging import Formatter, NullHandler, StreamHandler
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, ClassVar, Final, Literal, Self, TextIO

if TYPE_CHECKING:
    from pathlib import Path

__all__: list[str] = ["LoggerUtils"]

type LevelType = Literal[
    "NOTSET",
    "DEBUG",
    "INFO",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

_LOG_FILE_SIZE: Final[int] = 2 * 1024 * 1024  # 2MB
_LOG_BACKUP_COUNT: Final[int] = 2

DEFAULT_LOG_LEVEL: Final[int] = logging.INFO
DEFAULT_NAMESPACE: Final[str] = "TermResolver"


class LoggerUtils:
    """Singleton that configures the resolver's logger tree.

    Console output is kept at WARNING so interactive use of the command-line tool stays readable,
    while the rotating log file receives everything from DEBUG upwards, including per-provider
    failure records written by the cascade.

    Attributes:
        _LOGGER_NAMESPACE (str): Prefix for every logger created through ``get_logger``.
        _configured (bool): Whether handlers have been attached.
        _instance (LoggerUtils | None): The singleton instance.
    """

    _LOGGER_NAMESPACE: ClassVar[str] = DEFAULT_NAMESPACE
    _configured: ClassVar[bool] = False
    _instance: ClassVar[Self | None] = None

    def __new__(cls, *args, **kwargs) -> Self:
        """Create or reuse the singleton instance.

        Returns:
            Self: The singleton instance of LoggerUtils.
        """
        _ = args, kwargs
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, filename: str | Path, *, use_null_console: bool = False) -> None:
        """Attach console and file handlers to the namespace root logger.

        Does nothing when the logger tree has already been configured.

        Args:
            filename (str | Path): Absolute path of the log file. Empty disables file logging.
            use_null_console (bool): If True, attach a NullHandler instead of a console handler.
        """
        if LoggerUtils._configured:
            return

        self.root_logger: logging.Logger = logging.getLogger(self._LOGGER_NAMESPACE)
        self._use_null_console: bool = bool(use_null_console) or sys.stderr is None
        filename = str(filename)
        # handler levels only filter what passes the logger level
        self.root_logger.setLevel(DEFAULT_LOG_LEVEL)

        self._console_logging()
        if filename.strip():
            self._file_logging(filename)
        else:
            self.root_logger.warning("Log file name is empty. Logging to the file is not performed.")

        warnings.showwarning = self.warning_to_log
        LoggerUtils._configured = True

    def warning_to_log(
        self,
        message: Warning | str,
        category: type[Warning],
        filename: str,
        lineno: int,
        file: TextIO | None = None,
        line: str | None = None,
    ) -> None:
        """Redirect ``warnings.showwarning`` output into the log."""
        _ = file, line
        self.root_logger.warning("%s:%d: %s: %s", filename, lineno, category.__name__, message)

    @classmethod
    def initialize(cls, namespace: str) -> None:
        """Set the logger namespace before the first configuration.

        Args:
            namespace (str): The namespace to set for the logger.

        Raises:
            RuntimeError: If the logger is already configured.
        """
        if cls._configured:
            msg = "LoggerUtils is already configured. Reinitialization is not allowed."
            raise RuntimeError(msg)

        cls._LOGGER_NAMESPACE = namespace

    @classmethod
    def reset(cls) -> None:
        """Detach all handlers and forget the configuration (used between test runs)."""
        root_logger: logging.Logger = logging.getLogger(cls._LOGGER_NAMESPACE)
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()
        cls._configured = False
        cls._instance = None

    def _console_logging(self) -> None:
        if self._use_null_console:
            if not self._has_handler(NullHandler):
                self.root_logger.addHandler(NullHandler())
            return

        if self._has_handler(StreamHandler):
            self.root_logger.warning("Console logging is already configured.")
            return

        console_handler: StreamHandler[TextIO] = StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(Formatter("%(levelname)s: %(message)s"))
        self.root_logger.addHandler(console_handler)

    def _file_logging(self, filename: str) -> None:
        """Configure rotating UTF-8 log output to file.

        Args:
            filename (str): Absolute path to the log file.
        """
        if self._has_handler(RotatingFileHandler):
            self.root_logger.warning("File logging is already configured.")
            return

        try:
            file_handler = RotatingFileHandler(
                filename=filename,
                maxBytes=_LOG_FILE_SIZE,
                backupCount=_LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        except (FileNotFoundError, PermissionError):
            self.root_logger.error("Incorrect log file name: %s\nLogging to the file is not performed.", filename)
            return

        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            Formatter("%(asctime)s %(levelname)-8s %(process)5d %(lineno)4d %(name)-44s\t%(funcName)s\t%(message)s")
        )
        self.root_logger.addHandler(file_handler)

    def _has_handler(self, handler_type: type) -> bool:
        return any(isinstance(h, handler_type) for h in self.root_logger.handlers)

    def set_level(self, level: LevelType | str) -> None:
        """Set the level of the namespace root logger.

        Unknown level names fall back to INFO and log a warning.

        Args:
            level (LevelType | str): Level name, case-insensitive.
        """
        level_map: dict[str, int] = logging.getLevelNamesMapping()
        try:
            self.root_logger.setLevel(level_map[level.upper()])
        except KeyError:
            self.root_logger.setLevel(DEFAULT_LOG_LEVEL)
            self.root_logger.warning("Unknown logging level '%s' specified.\nLogging level set to 'INFO'.", level)

    @staticmethod
    def get_logger(name: str | None = None) -> logging.Logger:
        """Get a logger below the configured namespace.

        Args:
            name (str | None): Dotted module name. None returns the namespace root logger.

        Returns:
            logging.Logger: The logger instance.
        """
        full_name: str | None
        if LoggerUtils._LOGGER_NAMESPACE:
            full_name = f"{LoggerUtils._LOGGER_NAMESPACE}.{name}" if name else LoggerUtils._LOGGER_NAMESPACE
        else:
            full_name = name or None
        return logging.getLogger(full_name)
