# app/schemas/outpass.py

from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.models.enums import OutpassStatus, OutpassType
from app.schemas.user import UserSummary
from app.services.outpass_service import OutpassView
from app.services.state_machine import OutpassAction, can_transition


# ============================================================
# STUDENT → new outpass request
# ============================================================
class OutpassCreate(BaseModel):
    type: OutpassType = OutpassType.Local
    purpose: str = Field(min_length=1, max_length=500)
    destination: str = Field(min_length=1, max_length=200)
    from_date: datetime
    to_date: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "type": "home",
                "purpose": "Visiting family for the weekend",
                "destination": "Lucknow",
                "from_date": "2025-03-14T09:00:00Z",
                "to_date": "2025-03-16T18:00:00Z"
            }
        }


# ============================================================
# OUTPASS READ
# ============================================================
class OutpassRead(BaseModel):
    id: UUID
    outpass_number: str
    student_id: UUID
    type: OutpassType
    purpose: str
    destination: str
    from_date: datetime
    to_date: datetime
    duration_hours: int
    status: OutpassStatus

    warden_id: Optional[UUID] = None
    warden_remarks: Optional[str] = None
    approved_at: Optional[datetime] = None

    rejected_by: Optional[UUID] = None
    rejection_reason: Optional[str] = None
    rejected_at: Optional[datetime] = None

    cancelled_at: Optional[datetime] = None

    check_out_time: Optional[datetime] = None
    check_out_by: Optional[UUID] = None
    check_in_time: Optional[datetime] = None
    check_in_by: Optional[UUID] = None

    is_overdue: bool = False
    verification_token: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    student: Optional[UserSummary] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_view(cls, view: OutpassView) -> "OutpassRead":
        data = cls.model_validate(view.outpass)
        if view.student:
            data.student = UserSummary.model_validate(view.student)
        return data


class OutpassList(BaseModel):
    outpasses: List[OutpassRead]
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def build(cls, views: List[OutpassView], total: int, page: int, limit: int) -> "OutpassList":
        return cls(
            outpasses=[OutpassRead.from_view(v) for v in views],
            total=total,
            page=page,
            limit=limit,
            pages=(total + limit - 1) // limit,
        )


# ============================================================
# WARDEN DECISIONS
# ============================================================
class ApproveRequest(BaseModel):
    remarks: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str


# ============================================================
# SECURITY GATE
# ============================================================
class ScanRequest(BaseModel):
    # Raw scanned payload (the QR code content)
    token: str


class GateActionRequest(BaseModel):
    outpass_id: UUID
    # Kept in the audit trail only
    remarks: Optional[str] = Field(default=None, max_length=500)


class ScanResponse(BaseModel):
    outpass: OutpassRead
    can_check_out: bool
    can_check_in: bool

    @classmethod
    def from_view(cls, view: OutpassView) -> "ScanResponse":
        outpass = view.outpass
        return cls(
            outpass=OutpassRead.from_view(view),
            can_check_out=(
                can_transition(outpass.status, OutpassAction.CheckOut)
                and outpass.check_out_time is None
            ),
            can_check_in=(
                can_transition(outpass.status, OutpassAction.CheckInLate)
                and outpass.check_in_time is None
            ),
        )


# ============================================================
# STATISTICS
# ============================================================
class StudentStats(BaseModel):
    total_outpasses: int
    pending_outpasses: int
    approved_outpasses: int
    rejected_outpasses: int
    active_outpasses: int
    overdue_outpasses: int


class WardenStats(BaseModel):
    total_requests: int
    pending_requests: int
    approved_today: int
    rejected_today: int
    active_outpasses: int
    overdue_outpasses: int


class SecurityStats(BaseModel):
    total_check_outs: int
    total_check_ins: int
    active_outpasses: int
    overdue_outpasses: int
    check_outs_today: int
    check_ins_today: int


# ============================================================
# JOBS
# ============================================================
class SweepResult(BaseModel):
    status: str = "success"
    swept: int
    outpass_numbers: List[str] = []
