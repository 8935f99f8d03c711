# =============================================================================
# lore_core/errors/exceptions.py
# Custom Exception Hierarchy for the LocaleLore offline core
# =============================================================================

from typing import Optional, Dict, Any


class LoreError(Exception):
    """
    Root of the offline core's exceptions.

    `code` is a stable identifier ("STORE_001", "SYNC_001", ...) that ends
    up in ServiceResult.error_code; `details` is context for the log line;
    `recoverable` is False only for problems a retry cannot fix (bad config).
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "LORE_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# STORAGE EXCEPTIONS
# =============================================================================

class StoreUnavailableError(LoreError):
    """Raised when the durable store cannot be opened"""

    def __init__(
        self,
        message: str,
        db_path: Optional[str] = None,
        reason: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if db_path:
            details["db_path"] = db_path
        if reason:
            details["reason"] = reason

        super().__init__(
            message=message,
            code="STORE_001",
            details=details,
            **kwargs,
        )


class StoreWriteError(LoreError):
    """Raised when a write to an opened store fails"""

    def __init__(
        self,
        message: str,
        collection: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if collection:
            details["collection"] = collection

        super().__init__(
            message=message,
            code="STORE_002",
            details=details,
            **kwargs,
        )


# =============================================================================
# QUEUE / SYNC EXCEPTIONS
# =============================================================================

class InvalidActionTypeError(LoreError):
    """Raised when an action type is outside the supported set"""

    def __init__(
        self,
        message: str,
        action_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if action_type is not None:
            details["action_type"] = action_type

        super().__init__(
            message=message,
            code="QUEUE_001",
            details=details,
            **kwargs,
        )


class DispatchFailedError(LoreError):
    """Raised when the remote service rejects or fails a pending action"""

    def __init__(
        self,
        message: str,
        action_id: Optional[int] = None,
        action_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if action_id is not None:
            details["action_id"] = action_id
        if action_type:
            details["action_type"] = action_type

        super().__init__(
            message=message,
            code="SYNC_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# CACHE EXCEPTIONS
# =============================================================================

class InvalidRecordError(LoreError):
    """Raised when a record cannot be cached (e.g. missing identifier)"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field

        super().__init__(
            message=message,
            code="CACHE_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(LoreError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
