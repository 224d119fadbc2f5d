from pydantic import BaseModel
from typing import Optional, Dict, Any, List
from uuid import UUID
from datetime import datetime


class NotificationRead(BaseModel):
    id: UUID
    kind: str
    title: str
    message: str
    data: Dict[str, Any] = {}
    read: bool
    outpass_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationList(BaseModel):
    notifications: List[NotificationRead]
    unread_count: int
    page: int
    limit: int
