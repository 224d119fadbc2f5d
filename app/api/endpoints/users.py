# app/api/endpoints/users.py

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.api.deps import get_db_session, require_admin
from app.models.user import User, UserRole
from app.schemas.user import UserCreate, UserRead
from app.services.audit_service import log_activity
from app.services.auth_service import create_user, list_users

router = APIRouter(prefix="/api/users", tags=["Users (Admin)"])


@router.post("/", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_account(
    data: UserCreate,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a student, warden, security or admin account."""
    admin_id, admin_name = admin.id, admin.name

    try:
        user = await create_user(session, **data.model_dump())
    except ValueError as e:
        # Role/field mismatch, or a duplicate email / roll number
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    background_tasks.add_task(
        log_activity,
        action="USER_CREATED",
        actor_id=admin_id,
        actor_role="Admin",
        actor_name=admin_name,
        details={"user_id": str(user.id), "role": user.role.value, "email": user.email},
    )
    return user


@router.get("/", response_model=List[UserRead])
async def get_users(
    role: Optional[UserRole] = None,
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    return await list_users(session, role=role)
