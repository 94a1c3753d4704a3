"""
Common schemas and response models
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseResponse(BaseModel):
    """Base response model"""
    success: bool = Field(default=True)
    message: Optional[str] = Field(default=None)
    timestamp: datetime = Field(default_factory=_utcnow)


class DataResponse(BaseResponse):
    """Response with data"""
    data: Any = Field(...)


class ListResponse(BaseResponse):
    """Response with list data"""
    data: List[Any] = Field(default_factory=list)
    count: int = Field(default=0)
    sort_by: Optional[str] = Field(default=None)


class ErrorResponse(BaseResponse):
    """Error response model"""
    success: bool = Field(default=False)
    error: Optional[str] = Field(default=None)
    details: Optional[Dict[str, Any]] = Field(default=None)


class HealthResponse(BaseModel):
    """Health check response"""
    status: str = Field(...)
    version: str = Field(...)
    scheduler: str = Field(default="stopped")
