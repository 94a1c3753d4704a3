"""
Metrics refresh report schemas
"""

from typing import List
from pydantic import BaseModel, Field


class RefreshError(BaseModel):
    """One entry that could not be refreshed"""
    startup_id: int = Field(...)
    message: str = Field(...)


class RefreshReport(BaseModel):
    """Aggregate outcome of one refresh run"""
    succeeded: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    removed: int = Field(default=0, ge=0)
    errors: List[RefreshError] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed + self.removed
