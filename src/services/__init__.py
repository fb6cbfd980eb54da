"""Service layer."""

from src.services.push_service import EnqueueResult, PushBatchService

__all__ = ["EnqueueResult", "PushBatchService"]
