# app/models/outpass.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Boolean, DateTime, Index, String, Text
from sqlalchemy import Enum as SAEnum
from datetime import datetime
import uuid
from typing import Optional

from app.core.clock import utcnow
from app.models.enums import OutpassStatus, OutpassType


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Outpass(SQLModel, table=True):
    __tablename__ = "outpasses"
    __table_args__ = (
        Index("ix_outpasses_student_status", "student_id", "status"),
        Index("ix_outpasses_status_to_date", "status", "to_date"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    # OP-YYYYMMDD-NNNN, allocated from outpass_sequences
    outpass_number: str = Field(
        sa_column=Column(String(20), nullable=False, unique=True)
    )

    student_id: uuid.UUID = Field(foreign_key="users.id", index=True)

    type: OutpassType = Field(
        default=OutpassType.Local,
        sa_column=Column(
            SAEnum(OutpassType, name="outpass_type", values_callable=_enum_values),
            nullable=False,
        )
    )
    purpose: str = Field(sa_column=Column(Text, nullable=False))
    destination: str = Field(sa_column=Column(String, nullable=False))

    # Naive UTC, half-open [from_date, to_date)
    from_date: datetime = Field(sa_column=Column(DateTime, nullable=False))
    to_date: datetime = Field(sa_column=Column(DateTime, nullable=False))

    status: OutpassStatus = Field(
        default=OutpassStatus.Pending,
        sa_column=Column(
            SAEnum(OutpassStatus, name="outpass_status", values_callable=_enum_values),
            nullable=False,
            index=True,
        )
    )

    # --- Warden decision ---
    warden_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    warden_remarks: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    approved_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    rejected_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    rejection_reason: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    rejected_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    cancelled_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    # --- Gate movements ---
    check_out_time: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    check_out_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    check_in_time: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    check_in_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")

    is_overdue: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False, index=True)
    )

    # Signed scan payload, issued on approval
    verification_token: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False)
    )

    @property
    def duration_hours(self) -> int:
        return round((self.to_date - self.from_date).total_seconds() / 3600)


class OutpassSequence(SQLModel, table=True):
    """Per-day counter behind outpass numbers."""
    __tablename__ = "outpass_sequences"

    day: str = Field(sa_column=Column(String(8), primary_key=True))
    last_value: int = Field(default=0, nullable=False)
