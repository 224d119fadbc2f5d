# app/api/endpoints/warden.py

from fastapi import APIRouter, Depends, Query, BackgroundTasks
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.api.deps import get_outpass_service, require_warden
from app.core.exceptions import OutpassError
from app.models.enums import OutpassStatus, OutpassType
from app.models.user import User
from app.schemas.outpass import (
    ApproveRequest,
    OutpassList,
    OutpassRead,
    RejectRequest,
    WardenStats,
)
from app.services.audit_service import log_activity
from app.services.outpass_service import OutpassService, OutpassView

router = APIRouter(prefix="/api/warden", tags=["Warden"])


# ------------------------------------------------------------
# PENDING QUEUE (oldest first)
# ------------------------------------------------------------
@router.get("/outpasses/pending", response_model=OutpassList)
async def pending_outpasses(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_warden),
    service: OutpassService = Depends(get_outpass_service),
):
    views, total = await service.pending_for_warden(current_user, page=page, limit=limit)
    return OutpassList.build(views, total, page, limit)


# ------------------------------------------------------------
# ALL OUTPASSES OF THE HOSTEL
# ------------------------------------------------------------
@router.get("/outpasses", response_model=OutpassList)
async def hostel_outpasses(
    status: Optional[OutpassStatus] = None,
    type: Optional[OutpassType] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_warden),
    service: OutpassService = Depends(get_outpass_service),
):
    views, total = await service.list_for_warden(
        current_user,
        status=status,
        type=type,
        from_date=from_date,
        to_date=to_date,
        page=page,
        limit=limit,
    )
    return OutpassList.build(views, total, page, limit)


# ------------------------------------------------------------
# DASHBOARD STATS
# ------------------------------------------------------------
@router.get("/stats", response_model=WardenStats)
async def warden_stats(
    current_user: User = Depends(require_warden),
    service: OutpassService = Depends(get_outpass_service),
):
    return await service.warden_stats(current_user)


# ------------------------------------------------------------
# APPROVE
# ------------------------------------------------------------
@router.post("/outpasses/{outpass_id}/approve", response_model=OutpassRead)
async def approve_outpass(
    outpass_id: UUID,
    background_tasks: BackgroundTasks,
    data: Optional[ApproveRequest] = None,
    current_user: User = Depends(require_warden),
    service: OutpassService = Depends(get_outpass_service),
):
    warden_id, warden_name = current_user.id, current_user.name
    remarks = data.remarks if data else None

    try:
        outpass = await service.approve(outpass_id, warden_id, remarks)
    except OutpassError as e:
        raise e.to_http()

    background_tasks.add_task(
        log_activity,
        action="OUTPASS_APPROVED",
        actor_id=warden_id,
        actor_role="Warden",
        actor_name=warden_name,
        outpass_id=outpass.id,
        remarks=remarks,
    )

    return OutpassRead.from_view(OutpassView(outpass))


# ------------------------------------------------------------
# REJECT
# ------------------------------------------------------------
@router.post("/outpasses/{outpass_id}/reject", response_model=OutpassRead)
async def reject_outpass(
    outpass_id: UUID,
    data: RejectRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_warden),
    service: OutpassService = Depends(get_outpass_service),
):
    warden_id, warden_name = current_user.id, current_user.name

    try:
        outpass = await service.reject(outpass_id, warden_id, data.reason)
    except OutpassError as e:
        raise e.to_http()

    background_tasks.add_task(
        log_activity,
        action="OUTPASS_REJECTED",
        actor_id=warden_id,
        actor_role="Warden",
        actor_name=warden_name,
        outpass_id=outpass.id,
        remarks=outpass.rejection_reason,
    )

    return OutpassRead.from_view(OutpassView(outpass))
