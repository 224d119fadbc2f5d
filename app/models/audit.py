#app/models/audit.py

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from sqlalchemy.dialects.postgresql import JSONB
from typing import Optional, Dict, Any
from uuid import UUID, uuid4
from datetime import datetime

from app.core.clock import utcnow

class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    outpass_id: Optional[UUID] = Field(default=None, foreign_key="outpasses.id")
    actor_id: Optional[UUID] = Field(default=None, foreign_key="users.id")
    actor_role: Optional[str] = None

    # Actor name snapshot
    actor_name: Optional[str] = None

    # e.g. "OUTPASS_APPROVED", "OUTPASS_CHECKED_OUT", "SYSTEM_SETTINGS_UPDATED"
    action: str = Field(index=True)
    remarks: Optional[str] = None

    # Stores {"outpass_number": "...", "status": "..."}
    details: Dict[str, Any] = Field(
        default={},
        sa_column=Column(JSON().with_variant(JSONB, "postgresql"))
    )

    timestamp: datetime = Field(default_factory=utcnow)
