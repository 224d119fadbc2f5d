# app/models/notification.py

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from sqlalchemy.dialects.postgresql import JSONB
from typing import Optional, Dict, Any
from uuid import UUID, uuid4
from datetime import datetime

from app.core.clock import utcnow


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)

    # NotificationKind value, e.g. "outpass_approved"
    kind: str = Field(index=True)
    title: str
    message: str

    # Stores {"outpass_id": "...", "outpass_number": "..."}
    data: Dict[str, Any] = Field(
        default={},
        sa_column=Column(JSON().with_variant(JSONB, "postgresql"))
    )

    read: bool = Field(default=False, index=True)
    outpass_id: Optional[UUID] = Field(default=None, foreign_key="outpasses.id")

    created_at: datetime = Field(default_factory=utcnow)
