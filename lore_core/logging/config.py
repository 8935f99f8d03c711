# =============================================================================
# lore_core/logging/config.py
# Logging Configuration for the LocaleLore offline core
# =============================================================================

import logging
import sys
import time
from pathlib import Path
from datetime import datetime
from typing import Optional, Union


# Log format
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Log directory
LOG_DIR = Path("logs")


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_to_file: bool = True,
    log_filename: Optional[str] = None,
    log_dir: Optional[Path] = None,
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (default: INFO); names like "DEBUG" are accepted
        log_to_file: Whether to also log to a file
        log_filename: Custom log filename (default: lore_YYYY-MM-DD.log)
        log_dir: Directory for the log file (default: ./logs)
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]

    if log_to_file:
        directory = Path(log_dir) if log_dir else LOG_DIR
        directory.mkdir(parents=True, exist_ok=True)
        if log_filename is None:
            log_filename = f"lore_{datetime.now().strftime('%Y-%m-%d')}.log"
        handlers.append(logging.FileHandler(directory / log_filename))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    # Reduce noise from the Supabase client stack
    for noisy in ("urllib3", "httpx", "httpcore", "hpack", "supabase", "postgrest"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger("lore_core").info("Logging initialized")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Usage:
        from lore_core.logging import get_logger
        logger = get_logger(__name__)
        logger.info("Sync started")
    """
    return logging.getLogger(name)


class LogContext:
    """
    Times an operation and logs how it ended.

    Success is logged at DEBUG; failure at WARNING without a traceback,
    since whoever handles the exception logs it in full. Exceptions are
    never suppressed.

        with LogContext(logger, "Draining pending actions") as ctx:
            engine.sync_now()
        ctx.elapsed  # seconds
    """

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.elapsed: Optional[float] = None
        self._started: Optional[float] = None

    def __enter__(self) -> "LogContext":
        self._started = time.perf_counter()
        self.logger.debug(f"{self.operation}...")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.elapsed = time.perf_counter() - self._started
        if exc_type is None:
            self.logger.debug(f"{self.operation} done in {self.elapsed:.3f}s")
        else:
            self.logger.warning(
                f"{self.operation} failed after {self.elapsed:.3f}s: {exc_type.__name__}"
            )
        return False
