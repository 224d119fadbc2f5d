# app/services/audit_service.py

from typing import Any, Dict, Optional
from uuid import UUID

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from app.core.database import AsyncSessionLocal
from app.models.audit import AuditLog


async def log_activity(
    action: str,
    actor_id: Optional[UUID],
    actor_role: Optional[str] = None,
    actor_name: Optional[str] = None,
    outpass_id: Optional[UUID] = None,
    remarks: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
):
    """
    Append one audit row in its own session, so it can run from
    BackgroundTasks after the request session has closed. A failed write is
    logged and dropped; the action it records has already happened.
    """
    entry = AuditLog(
        actor_id=actor_id,
        actor_role=actor_role,
        actor_name=actor_name,
        outpass_id=outpass_id,
        action=action,
        remarks=remarks,
        details=details or {},
    )

    async with AsyncSessionLocal() as session:
        session.add(entry)
        try:
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            logger.exception(f"Audit log write failed for {action} (outpass={outpass_id})")
