from pydantic import BaseModel
from typing import Optional, Generic, TypeVar
from datetime import datetime

T = TypeVar('T')

class ResponseBase(BaseModel, Generic[T]):
    """Envelope for callers that hand results to a transport layer"""
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    data: Optional[T] = None

    @classmethod
    def ok(cls, data: T, message: Optional[str] = None):
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, error: Exception):
        return cls(
            success=False,
            message=getattr(error, "message", str(error)),
            error=getattr(error, "error_code", None) or type(error).__name__
        )

class TimeStampedBase(BaseModel):
    """Schema carrying creation and update timestamps"""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
