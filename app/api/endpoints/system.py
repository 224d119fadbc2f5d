# app/api/endpoints/system.py

from fastapi import APIRouter, Depends, HTTPException, Query, BackgroundTasks
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from typing import List, Optional
from uuid import UUID

from app.api.deps import get_db_session, get_policy_store, require_admin
from app.models.audit import AuditLog
from app.models.user import User
from app.schemas.audit import AuditLogRead
from app.schemas.system import SystemSettingsRead, SystemSettingsUpdate
from app.services.audit_service import log_activity
from app.services.system_service import PolicyStore

router = APIRouter(prefix="/api/system", tags=["System (Admin)"])


# ------------------------------------------------------------
# CURRENT POLICY
# ------------------------------------------------------------
@router.get("/settings", response_model=SystemSettingsRead)
async def get_settings(
    _: User = Depends(require_admin),
    policy_store: PolicyStore = Depends(get_policy_store),
):
    return policy_store.current


# ------------------------------------------------------------
# UPDATE POLICY
# ------------------------------------------------------------
@router.put("/settings", response_model=SystemSettingsRead)
async def update_settings(
    data: SystemSettingsUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
    policy_store: PolicyStore = Depends(get_policy_store),
):
    admin_id, admin_name = current_user.id, current_user.name

    try:
        policy = await policy_store.update(
            session,
            allow_requests=data.allow_requests,
            overdue_threshold=data.overdue_threshold,
            updated_by=admin_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    background_tasks.add_task(
        log_activity,
        action="SYSTEM_SETTINGS_UPDATED",
        actor_id=admin_id,
        actor_role="Admin",
        actor_name=admin_name,
        details=data.model_dump(exclude_none=True),
    )

    return policy


# ------------------------------------------------------------
# RELOAD POLICY FROM THE DATABASE
# ------------------------------------------------------------
@router.post("/settings/reload", response_model=SystemSettingsRead)
async def reload_settings(
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
    policy_store: PolicyStore = Depends(get_policy_store),
):
    return await policy_store.reload(session)


# ------------------------------------------------------------
# AUDIT TRAIL
# ------------------------------------------------------------
@router.get("/audit-logs", response_model=List[AuditLogRead])
async def get_audit_logs(
    outpass_id: Optional[UUID] = None,
    actor_id: Optional[UUID] = None,
    limit: int = Query(50, ge=1, le=200),
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    query = select(AuditLog)
    if outpass_id:
        query = query.where(AuditLog.outpass_id == outpass_id)
    if actor_id:
        query = query.where(AuditLog.actor_id == actor_id)

    result = await session.execute(query.order_by(AuditLog.timestamp.desc()).limit(limit))
    return result.scalars().all()
