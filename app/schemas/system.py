from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime


class SystemSettingsRead(BaseModel):
    allow_requests: bool
    overdue_threshold: int
    updated_at: Optional[datetime] = None
    updated_by: Optional[UUID] = None

    class Config:
        from_attributes = True


class SystemSettingsUpdate(BaseModel):
    allow_requests: Optional[bool] = None
    # 0 disables the overdue limit
    overdue_threshold: Optional[int] = Field(default=None, ge=0)
