# app/api/deps.py

from typing import AsyncGenerator
from fastapi import BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock
from app.core.locks import KeyedLock
from app.core.security import decode_token, get_outpass_signer
from app.core.database import get_session
from app.services.auth_service import get_user_by_id
from app.services.notification_service import BackgroundNotifier
from app.services.outpass_service import OutpassService
from app.services.system_service import PolicyStore
from app.models.user import User, UserRole


bearer_scheme = HTTPBearer(auto_error=True)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _token_subject(token: str) -> str:
    try:
        payload = decode_token(token)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Session expired, please log in again")
    except jwt.PyJWTError:
        raise _unauthorized("Could not validate credentials")

    subject = payload.get("sub")
    if not subject:
        raise _unauthorized("Invalid token payload")
    return subject


# ------------------------------------------------------------
# Current user (JWT bearer)
# ------------------------------------------------------------
async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db_session),
) -> User:
    user = await get_user_by_id(session, _token_subject(credentials.credentials))
    if not user:
        raise _unauthorized("User not found")
    return user


# ------------------------------------------------------------
# Role guards
# ------------------------------------------------------------
def role_required(*allowed_roles: UserRole):
    allowed = frozenset(allowed_roles)
    needed = " or ".join(r.value for r in allowed_roles)

    async def checker(current_user: User = Depends(get_current_user)):
        if UserRole(current_user.role) not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{needed} access required",
            )
        return current_user

    return checker


require_admin = role_required(UserRole.Admin)
require_student = role_required(UserRole.Student)
require_warden = role_required(UserRole.Warden)
require_security = role_required(UserRole.Security)


# ------------------------------------------------------------
# Application state (created once in app.main)
# ------------------------------------------------------------
def get_policy_store(request: Request) -> PolicyStore:
    return request.app.state.policy_store


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_subject_locks(request: Request) -> KeyedLock:
    return request.app.state.subject_locks


# ------------------------------------------------------------
# Outpass service for this request
# ------------------------------------------------------------
async def get_outpass_service(
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db_session),
    policy_store: PolicyStore = Depends(get_policy_store),
    clock: Clock = Depends(get_clock),
    subject_locks: KeyedLock = Depends(get_subject_locks),
) -> OutpassService:
    return OutpassService(
        session,
        BackgroundNotifier(background_tasks),
        clock=clock,
        signer=get_outpass_signer(),
        policy=policy_store.current,
        subject_locks=subject_locks,
    )
