# app/services/auth_service.py

from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from typing import Any, Optional
import uuid

from loguru import logger

from app.core.config import settings
from app.models.user import ResolvedActor, User, UserRole
from app.core.security import (
    hash_password,
    verify_password,
    create_access_token,
)
from app.schemas.auth import TokenWithUser
from app.schemas.user import UserRead


def _as_uuid(value: Any) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


# ============================================================================
# FETCH USER BY EMAIL
# ============================================================================
async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


# ============================================================================
# FETCH USER BY ID
# ============================================================================
async def get_user_by_id(session: AsyncSession, user_id: Any) -> User | None:
    user_uuid = _as_uuid(user_id)
    if user_uuid is None:
        return None
    result = await session.execute(select(User).where(User.id == user_uuid))
    return result.scalar_one_or_none()


# ============================================================================
# IDENTITY LOOKUP (used by the outpass core)
# ============================================================================
async def resolve_actor(session: AsyncSession, user_id: Any) -> ResolvedActor | None:
    user = await get_user_by_id(session, user_id)
    if not user:
        return None
    return ResolvedActor(kind=UserRole(user.role), user=user)


async def get_wardens_for_hostel(session: AsyncSession, hostel: str | None) -> list[User]:
    """Wardens of the hostel, plus wardens with no hostel (they see every hostel)."""
    query = select(User).where(User.role == UserRole.Warden)
    if hostel:
        query = query.where((User.hostel == hostel) | (User.hostel.is_(None)))
    result = await session.execute(query)
    return list(result.scalars().all())


# ============================================================================
# CREATE USER
# ============================================================================
async def create_user(
    session: AsyncSession,
    name: str,
    email: str,
    password: str,
    role: UserRole,
    roll_number: str | None = None,
    hostel: str | None = None,
    room_number: str | None = None,
    phone: str | None = None,
    parent_phone: str | None = None,
    gate: str | None = None,
) -> User:

    # ---- VALIDATION RULES ----
    # 1) Students must have a roll number; nobody else may
    if role == UserRole.Student and not roll_number:
        raise ValueError("Student account must include roll_number")
    if role != UserRole.Student and roll_number:
        raise ValueError(f"{role.value} accounts cannot have roll_number")

    # 2) Only students and wardens belong to a hostel
    if role not in (UserRole.Student, UserRole.Warden) and hostel:
        raise ValueError(f"{role.value} accounts cannot have a hostel")

    # 3) Gate is for security personnel only
    if role != UserRole.Security and gate:
        raise ValueError(f"{role.value} accounts cannot have a gate")

    user = User(
        id=uuid.uuid4(),
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        roll_number=roll_number,
        hostel=hostel,
        room_number=room_number if role == UserRole.Student else None,
        phone=phone,
        parent_phone=parent_phone if role == UserRole.Student else None,
        gate=gate,
    )

    session.add(user)

    try:
        await session.commit()
        await session.refresh(user)
        return user

    except IntegrityError:
        await session.rollback()
        raise ValueError("User with this email or roll number already exists")


# ============================================================================
# AUTHENTICATE (email or student roll number)
# ============================================================================
async def authenticate_user(session: AsyncSession, identifier: str, password: str) -> User | None:
    identifier = identifier.strip()

    user = await get_user_by_email(session, identifier)
    if not user:
        result = await session.execute(
            select(User).where(User.roll_number.ilike(identifier))
        )
        user = result.scalar_one_or_none()

    if not user:
        return None

    if not verify_password(password, user.password_hash):
        return None

    return user


# ============================================================================
# CREATE LOGIN RESPONSE
# ============================================================================
def create_login_response(user: User) -> TokenWithUser:
    role_str = user.role.value.lower() if isinstance(user.role, UserRole) else str(user.role).lower()

    token = create_access_token(
        subject=str(user.id),
        data={"role": role_str, "hostel": user.hostel},
    )

    return TokenWithUser(
        access_token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserRead.model_validate(user),
    )


# ============================================================================
# LIST USERS
# ============================================================================
async def list_users(session: AsyncSession, role: UserRole | None = None) -> list[User]:
    query = select(User).order_by(User.created_at.desc())
    if role:
        query = query.where(User.role == role)
    result = await session.execute(query)
    return list(result.scalars().all())


# ============================================================================
# SEED SUPER ADMIN (startup)
# ============================================================================
async def ensure_super_admin(session: AsyncSession) -> User | None:
    """Create the configured admin account once. Returns None when unconfigured."""
    if not settings.SUPER_ADMIN_EMAIL or not settings.SUPER_ADMIN_PASSWORD:
        logger.warning("SUPER_ADMIN_EMAIL / SUPER_ADMIN_PASSWORD not set; no admin seeded.")
        return None

    admin = await get_user_by_email(session, settings.SUPER_ADMIN_EMAIL)
    if admin:
        return admin

    logger.info(f"Seeding super admin {settings.SUPER_ADMIN_EMAIL}")
    return await create_user(
        session=session,
        name=settings.SUPER_ADMIN_NAME or "Super Admin",
        email=settings.SUPER_ADMIN_EMAIL,
        password=settings.SUPER_ADMIN_PASSWORD,
        role=UserRole.Admin,
    )
