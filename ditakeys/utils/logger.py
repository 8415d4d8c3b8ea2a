# ditakeys/utils/logger.py

import logging
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, Union
from functools import wraps

from ..models.types import ProcessingError

CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class DITALogger:
    """Centralized logging for the key space engine."""

    def __init__(
        self,
        name: str = "ditakeys",
        level: Union[int, str] = logging.INFO,
        log_file: Optional[Union[str, Path]] = None
    ):
        self.logger = logging.getLogger(name)
        self._setup_logger(level, log_file)

    def _setup_logger(self, level: Union[int, str], log_file: Optional[Union[str, Path]]) -> None:
        """Configure logging with proper formatters."""
        # Handlers are attached once per named logger
        if self.logger.handlers:
            return

        self.logger.setLevel(logging.DEBUG)

        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        self.logger.addHandler(console)

        if log_file:
            file_handler = logging.FileHandler(str(log_file))
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
            self.logger.addHandler(file_handler)

    # Plain level passthroughs so components can treat this like a Logger
    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.logger.error(msg, *args, **kwargs)

    def log_build_start(self, root_map: str) -> None:
        """Log the start of a key space build."""
        self.logger.info(f"Building key space from {Path(root_map).name}")

    def log_build_end(self, root_map: str, key_count: int, map_count: int, elapsed: float) -> None:
        """Log the end of a key space build."""
        self.logger.info(
            f"Key space built: {key_count} keys from {map_count} maps "
            f"({Path(root_map).name}, {elapsed * 1000:.1f} ms)"
        )

    def create_error_log(self, e: Exception, context: Dict[str, Any]) -> None:
        """Create comprehensive error log entry."""
        self.logger.error(
            "Error Details:\n"
            f"Timestamp: {datetime.now().isoformat()}\n"
            f"Error Type: {type(e).__name__}\n"
            f"Message: {str(e)}\n"
            f"Context: {context}\n"
            f"Stacktrace:\n{traceback.format_exc()}"
        )


def log_operation(operation: str):
    """Decorator for logging unexpected failures of async service operations."""
    def decorator(func):
        @wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except ProcessingError as e:
                self.logger.error(f"{operation} failed: {e.message} ({e.context})")
                raise
            except Exception as e:
                self.logger.create_error_log(e, {
                    'operation': operation,
                    'function': func.__name__,
                    'args': args,
                })
                raise
        return wrapper
    return decorator
