# app/api/endpoints/notifications.py

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from app.api.deps import get_db_session, get_current_user
from app.models.user import User
from app.schemas.notification import NotificationList
from app.services.notification_service import (
    list_notifications,
    mark_all_as_read,
    mark_as_read,
)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("/", response_model=NotificationList)
async def get_my_notifications(
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    return await list_notifications(
        session, current_user.id, unread_only=unread_only, page=page, limit=limit
    )


@router.post("/{notification_id}/read")
async def read_notification(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    if not await mark_as_read(session, current_user.id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")

    return {"message": "Notification marked as read"}


@router.post("/read-all")
async def read_all_notifications(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    updated = await mark_all_as_read(session, current_user.id)
    return {"message": "All notifications marked as read", "updated": updated}
