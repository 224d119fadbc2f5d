# app/api/endpoints/security.py

from fastapi import APIRouter, Depends, Request, BackgroundTasks
from typing import List

from app.api.deps import get_outpass_service, require_security
from app.core.exceptions import OutpassError
from app.core.rate_limiter import limiter, SCAN_LIMIT
from app.models.user import User
from app.schemas.outpass import (
    GateActionRequest,
    OutpassRead,
    ScanRequest,
    ScanResponse,
    SecurityStats,
)
from app.services.audit_service import log_activity
from app.services.outpass_service import OutpassService, OutpassView

router = APIRouter(prefix="/api/security", tags=["Security Gate"])


# ------------------------------------------------------------
# SCAN (verify the QR payload, no state change)
# ------------------------------------------------------------
@router.post("/scan", response_model=ScanResponse)
@limiter.limit(SCAN_LIMIT)
async def scan_outpass(
    request: Request,
    data: ScanRequest,
    _: User = Depends(require_security),
    service: OutpassService = Depends(get_outpass_service),
):
    try:
        view = await service.scan_and_verify(data.token)
    except OutpassError as e:
        raise e.to_http()

    return ScanResponse.from_view(view)


# ------------------------------------------------------------
# CHECK-OUT
# ------------------------------------------------------------
@router.post("/check-out", response_model=OutpassRead)
async def check_out(
    data: GateActionRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_security),
    service: OutpassService = Depends(get_outpass_service),
):
    security_id, security_name, gate = current_user.id, current_user.name, current_user.gate

    try:
        outpass = await service.check_out(data.outpass_id, security_id)
    except OutpassError as e:
        raise e.to_http()

    background_tasks.add_task(
        log_activity,
        action="STUDENT_CHECKED_OUT",
        actor_id=security_id,
        actor_role="Security",
        actor_name=security_name,
        outpass_id=outpass.id,
        remarks=data.remarks,
        details={"gate": gate},
    )

    return OutpassRead.from_view(OutpassView(outpass))


# ------------------------------------------------------------
# CHECK-IN (late returns end as overdue)
# ------------------------------------------------------------
@router.post("/check-in", response_model=OutpassRead)
async def check_in(
    data: GateActionRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_security),
    service: OutpassService = Depends(get_outpass_service),
):
    security_id, security_name, gate = current_user.id, current_user.name, current_user.gate

    try:
        outpass = await service.check_in(data.outpass_id, security_id)
    except OutpassError as e:
        raise e.to_http()

    background_tasks.add_task(
        log_activity,
        action="STUDENT_CHECKED_IN",
        actor_id=security_id,
        actor_role="Security",
        actor_name=security_name,
        outpass_id=outpass.id,
        remarks=data.remarks,
        details={"gate": gate, "is_overdue": outpass.is_overdue},
    )

    return OutpassRead.from_view(OutpassView(outpass))


# ------------------------------------------------------------
# STUDENTS CURRENTLY OUT
# ------------------------------------------------------------
@router.get("/active", response_model=List[OutpassRead])
async def active_outpasses(
    _: User = Depends(require_security),
    service: OutpassService = Depends(get_outpass_service),
):
    return [OutpassRead.from_view(v) for v in await service.active_outpasses()]


# ------------------------------------------------------------
# PAST RETURN TIME
# ------------------------------------------------------------
@router.get("/overdue", response_model=List[OutpassRead])
async def overdue_outpasses(
    _: User = Depends(require_security),
    service: OutpassService = Depends(get_outpass_service),
):
    return [OutpassRead.from_view(v) for v in await service.past_due_outpasses()]


# ------------------------------------------------------------
# GATE STATS
# ------------------------------------------------------------
@router.get("/stats", response_model=SecurityStats)
async def security_stats(
    _: User = Depends(require_security),
    service: OutpassService = Depends(get_outpass_service),
):
    return await service.security_stats()
