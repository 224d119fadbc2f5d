# app/models/system_setting.py

from sqlmodel import SQLModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.core.clock import utcnow

# The policy is a single row
SYSTEM_SETTINGS_ID = 1


class SystemSetting(SQLModel, table=True):
    __tablename__ = "system_settings"

    id: int = Field(default=SYSTEM_SETTINGS_ID, primary_key=True)

    # Global switch for new outpass requests
    allow_requests: bool = Field(default=True)

    # Students with this many overdue returns can no longer request outpasses
    overdue_threshold: int = Field(default=3)

    updated_by: Optional[UUID] = Field(default=None, foreign_key="users.id")
    updated_at: datetime = Field(default_factory=utcnow)
