from .base_service import ServiceResult, BaseService

__all__ = ["ServiceResult", "BaseService"]
