# =============================================================================
# lore_core/services/base_service.py
# Shared Result Type and Base Class for Offline Core Services
# =============================================================================

from __future__ import annotations
from abc import ABC
from typing import Optional, Dict, Any, Callable
from dataclasses import dataclass

from lore_core.logging import get_logger, LogContext
from lore_core.errors import handle_error, LoreError


@dataclass
class ServiceResult:
    """
    Outcome of a write made through a service.

    Truthy on success. On failure `error_code` carries the LoreError code
    (or "EXCEPTION" for anything unexpected) and `metadata` its details.
    """
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    recoverable: bool = True

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, data: Any = None, metadata: Dict[str, Any] = None) -> ServiceResult:
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(
        cls,
        error: str,
        error_code: str = "UNKNOWN",
        metadata: Dict[str, Any] = None,
        recoverable: bool = True,
    ) -> ServiceResult:
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            metadata=metadata,
            recoverable=recoverable,
        )

    @classmethod
    def from_exception(cls, e: Exception) -> ServiceResult:
        """Failed result carrying a LoreError's code and details."""
        if not isinstance(e, LoreError):
            return cls.fail(str(e), error_code="EXCEPTION")
        return cls.fail(
            e.message,
            error_code=e.code,
            metadata=e.details,
            recoverable=e.recoverable,
        )


class BaseService(ABC):
    """
    Base for the services the app talks to.

    Subclasses get a class-named logger and `safe_execute`, which turns any
    exception from a write into a failed ServiceResult:

        class FactService(BaseService):
            def save(self, fact) -> ServiceResult:
                return self.safe_execute("Saving fact", self._store.put, fact)
    """

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def log_operation(self, operation: str) -> LogContext:
        """Timing/failure log context named after the operation."""
        return LogContext(self.logger, operation)

    def safe_execute(
        self,
        operation: str,
        func: Callable[..., Any],
        *args,
        **kwargs
    ) -> ServiceResult:
        """
        Run `func(*args, **kwargs)` and wrap the outcome.

        Returns:
            ServiceResult.ok(return value), or a failed result; never raises
            for Exception subclasses
        """
        try:
            with self.log_operation(operation):
                value = func(*args, **kwargs)
        except LoreError as e:
            handle_error(e)
            return ServiceResult.from_exception(e)
        except Exception as e:
            self.logger.error(f"{operation} failed: {e}", exc_info=True)
            return ServiceResult.fail(str(e), error_code="EXCEPTION")
        return ServiceResult.ok(value)
