"""Shared result schemas."""

from typing import Any, Optional

from pydantic import BaseModel


class OperationResult(BaseModel):
    """Structured outcome returned to callers instead of raising domain errors."""

    success: bool
    error: Optional[str] = None
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "OperationResult":
        return cls(success=False, error=error)
