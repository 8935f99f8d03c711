# =============================================================================
# lore_core/errors/__init__.py
# Centralized Error Handling for the LocaleLore offline core
# =============================================================================

from .exceptions import (
    LoreError,
    StoreUnavailableError,
    StoreWriteError,
    InvalidActionTypeError,
    DispatchFailedError,
    InvalidRecordError,
    ConfigurationError,
)

from .handlers import (
    handle_error,
    error_boundary,
)

__all__ = [
    # Exceptions
    "LoreError",
    "StoreUnavailableError",
    "StoreWriteError",
    "InvalidActionTypeError",
    "DispatchFailedError",
    "InvalidRecordError",
    "ConfigurationError",
    # Handlers
    "handle_error",
    "error_boundary",
]
