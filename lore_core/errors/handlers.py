# =============================================================================
# lore_core/errors/handlers.py
# Error Handling Utilities for the LocaleLore offline core
# =============================================================================

from __future__ import annotations
import functools
import traceback
from typing import Optional, Callable, TypeVar, Any

from lore_core.logging import get_logger
from .exceptions import LoreError

logger = get_logger(__name__)

T = TypeVar("T")


def handle_error(
    error: Exception,
    log_error: bool = True,
    message: Optional[str] = None,
) -> dict:
    """
    Centralized error handling function.

    Nothing in the offline core surfaces raw exceptions to the UI layer, so
    handling means logging plus returning a serialisable summary the caller
    can attach to its own result object.

    Args:
        error: The exception to handle
        log_error: Whether to log the error
        message: Custom message (uses error message if None)

    Returns:
        Dict describing the error (type, code, message, details)
    """
    if isinstance(error, LoreError):
        summary = error.to_dict()
        if message:
            summary["message"] = message
    else:
        summary = {
            "error_type": error.__class__.__name__,
            "code": "UNKNOWN",
            "message": message or str(error),
            "details": {"traceback": traceback.format_exc()},
            "recoverable": True,
        }

    if log_error:
        logger.error(
            f"[{summary['code']}] {summary['message']}",
            extra={"details": summary["details"]},
            exc_info=not isinstance(error, LoreError),
        )

    return summary


def error_boundary(
    default_return: Any = None,
    error_message: Optional[str] = None,
    log: bool = True,
):
    """
    Decorator to wrap functions with error handling.

    Args:
        default_return: Value to return if function fails
        error_message: Custom error message prefix for the log line
        log: Whether to log errors

    Usage:
        @error_boundary(default_return=[], error_message="Offline search failed")
        def search(query: str) -> List[CachedFact]:
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., Optional[T]]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Optional[T]:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if log:
                    logger.error(
                        f"{error_message or 'Error in ' + func.__name__}: {e}",
                        exc_info=True,
                    )
                # Fresh copy so callers can't mutate a shared default
                if isinstance(default_return, (list, dict, set)):
                    return type(default_return)()
                return default_return

        return wrapper

    return decorator
