import logging
import sys
import threading
from datetime import datetime
from os import getenv, makedirs, path
from typing import Optional

from pythonjsonlogger import jsonlogger

from ..utils.files import clear_latest_items

# Constants
LOG_FILES_HORIZON = 5
FIELDS = [
    "name",
    "process",
    "processName",
    "threadName",
    "taskName",
    "asctime",
    "created",
    "msecs",
    "pathname",
    "module",
    "filename",
    "funcName",
    "levelno",
    "levelname",
    "message",
]


class LoggingConfigurator:
    """
    Logging configuration with environment-specific setups,
    thread-safe configuration, and flexible handler management.

    Nothing is configured on import: the command line (or the embedding
    application) calls ``configure`` once.
    """

    def __init__(self, environment: str = None, log_dir: Optional[str] = None):
        self.environment = environment or getenv("ENVIRONMENT", "development")
        self.log_dir = log_dir if log_dir is not None else getenv("PGBULK_LOG_DIR", "logs")
        self.root_logger = logging.getLogger()
        self._configured = False
        self._lock = threading.Lock()

    def configure(self, level: int = logging.INFO, to_files: bool = True):
        """Configure logging once globally (thread-safe)."""
        with self._lock:
            if self._configured:
                return

            self.root_logger.handlers.clear()
            self.root_logger.setLevel(level)

            if self.environment == "development":
                self.root_logger.addHandler(
                    self._create_console_handler(self._create_console_formatter())
                )

            if to_files and self.log_dir:
                error_handler, info_handler = self._create_file_handlers(
                    self._create_json_formatter()
                )
                self.root_logger.addHandler(error_handler)
                self.root_logger.addHandler(info_handler)

            self._configured = True

    def _create_json_formatter(self) -> jsonlogger.JsonFormatter:
        """Create JSON formatter for structured logging."""
        json_format = " ".join(map(lambda field_name: f"%({field_name})s", FIELDS))
        return jsonlogger.JsonFormatter(json_format)

    def _create_console_formatter(self) -> logging.Formatter:
        return logging.Formatter("[%(name)s] %(asctime)s %(levelname)s %(message)s")

    def _create_console_handler(self, formatter: logging.Formatter) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        handler.setLevel(logging.INFO)
        return handler

    def _create_file_handlers(self, formatter: jsonlogger.JsonFormatter) -> tuple:
        """Create error and info file handlers with directory management."""
        date_str = datetime.now().strftime("%Y-%m-%d")
        time_str = datetime.now().strftime("%H_%M")
        log_root_path = path.join(self.log_dir, date_str)

        if path.exists(log_root_path):
            clear_latest_items(log_root_path, LOG_FILES_HORIZON)

        base_path = path.join(log_root_path, time_str)
        makedirs(base_path, exist_ok=True)

        error_handler = logging.FileHandler(path.join(base_path, "error_log.log"), mode="a")
        error_handler.setFormatter(formatter)
        error_handler.setLevel(logging.ERROR)

        info_handler = logging.FileHandler(path.join(base_path, "info_log.log"), mode="a")
        info_handler.setFormatter(formatter)
        info_handler.setLevel(logging.INFO)

        return error_handler, info_handler

    def reconfigure(self, environment: str = None, **kwargs):
        """Reconfigure logging (useful for testing or runtime changes)."""
        if environment:
            self.environment = environment
        self._configured = False
        self.configure(**kwargs)


_configurator = LoggingConfigurator()


def configure_logging(environment: str = None, log_dir: Optional[str] = None, **kwargs):
    """Configure process-wide logging handlers. Called by the command line."""
    if environment:
        _configurator.environment = environment
    if log_dir is not None:
        _configurator.log_dir = log_dir
    _configurator.configure(**kwargs)


def get_logger(name: str, quiet: bool = False) -> logging.Logger:
    """
    Get a logger for the given name.

    With ``quiet`` the logger is a private instance, detached from the logging
    hierarchy, that discards every record.
    """
    if quiet:
        silent = logging.Logger(name)
        silent.addHandler(logging.NullHandler())
        silent.propagate = False
        return silent
    return logging.getLogger(name)
