# app/api/endpoints/outpasses.py

from fastapi import APIRouter, Depends, HTTPException, Query, BackgroundTasks, status
from typing import Optional
from uuid import UUID

from app.api.deps import get_current_user, get_outpass_service, require_student
from app.core.exceptions import OutpassError
from app.models.enums import OutpassStatus, OutpassType
from app.models.user import User
from app.schemas.outpass import OutpassCreate, OutpassList, OutpassRead, StudentStats
from app.services.audit_service import log_activity
from app.services.outpass_service import OutpassDetails, OutpassService, OutpassView

router = APIRouter(prefix="/api/outpasses", tags=["Outpasses (Student)"])


# ------------------------------------------------------------
# CREATE OUTPASS REQUEST
# ------------------------------------------------------------
@router.post("/", response_model=OutpassRead, status_code=status.HTTP_201_CREATED)
async def create_outpass(
    data: OutpassCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_student),
    service: OutpassService = Depends(get_outpass_service),
):
    student_id, student_name = current_user.id, current_user.name

    try:
        outpass = await service.request_outpass(
            student_id,
            data.from_date,
            data.to_date,
            OutpassDetails(destination=data.destination, purpose=data.purpose, type=data.type),
        )
    except OutpassError as e:
        raise e.to_http()

    background_tasks.add_task(
        log_activity,
        action="OUTPASS_REQUESTED",
        actor_id=student_id,
        actor_role="Student",
        actor_name=student_name,
        outpass_id=outpass.id,
        details={"outpass_number": outpass.outpass_number, "destination": outpass.destination},
    )

    return OutpassRead.from_view(OutpassView(outpass, current_user))


# ------------------------------------------------------------
# MY OUTPASSES
# ------------------------------------------------------------
@router.get("/my", response_model=OutpassList)
async def my_outpasses(
    status: Optional[OutpassStatus] = None,
    type: Optional[OutpassType] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_student),
    service: OutpassService = Depends(get_outpass_service),
):
    views, total = await service.list_my_outpasses(
        current_user.id, status=status, type=type, page=page, limit=limit
    )
    return OutpassList.build(views, total, page, limit)


# ------------------------------------------------------------
# MY STATS
# ------------------------------------------------------------
@router.get("/stats", response_model=StudentStats)
async def my_stats(
    current_user: User = Depends(require_student),
    service: OutpassService = Depends(get_outpass_service),
):
    return await service.student_stats(current_user.id)


# ------------------------------------------------------------
# GET ONE (students: own outpasses only)
# ------------------------------------------------------------
@router.get("/{outpass_id}", response_model=OutpassRead)
async def get_outpass(
    outpass_id: UUID,
    current_user: User = Depends(get_current_user),
    service: OutpassService = Depends(get_outpass_service),
):
    try:
        view = await service.get_outpass_view(outpass_id, current_user)
    except OutpassError as e:
        raise e.to_http()

    return OutpassRead.from_view(view)


# ------------------------------------------------------------
# CANCEL
# ------------------------------------------------------------
@router.post("/{outpass_id}/cancel", response_model=OutpassRead)
async def cancel_outpass(
    outpass_id: UUID,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_student),
    service: OutpassService = Depends(get_outpass_service),
):
    student_id, student_name = current_user.id, current_user.name

    try:
        outpass = await service.cancel(outpass_id, student_id)
    except OutpassError as e:
        raise e.to_http()

    background_tasks.add_task(
        log_activity,
        action="OUTPASS_CANCELLED",
        actor_id=student_id,
        actor_role="Student",
        actor_name=student_name,
        outpass_id=outpass.id,
    )

    return OutpassRead.from_view(OutpassView(outpass, current_user))
