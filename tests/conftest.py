import os
import uuid
import random
import string
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# ------------------------------------------------------------------
# FORCE TESTING MODE
# Set BEFORE importing app.main so settings and the engine pick it up.
# ------------------------------------------------------------------
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_outpass.db"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["JOB_SECRET"] = "test-job-secret"
os.environ["OVERDUE_SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SMTP_HOST"] = ""

from app.main import app
from app.core.clock import Clock
from app.core.database import AsyncSessionLocal, init_db, drop_db
from app.core.locks import KeyedLock
from app.core.security import OutpassTokenSigner, create_access_token
from app.models.user import User, UserRole
from app.services.notification_service import QueuedNotifier
from app.services.outpass_service import OutpassService
from app.services.system_service import PolicyStore, SystemPolicy

# Friday morning; tomorrow is a free day
NOW = datetime(2025, 3, 14, 8, 0, 0)


def random_str(prefix=""):
    return f"{prefix}{''.join(random.choices(string.ascii_lowercase + string.digits, k=6))}"


class FrozenClock(Clock):
    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


# ------------------------------------------------------------------
# DATABASE (fresh tables per test)
# ------------------------------------------------------------------
@pytest_asyncio.fixture(autouse=True)
async def database():
    await drop_db()
    await init_db()

    app.state.policy_store = PolicyStore()
    app.state.subject_locks = KeyedLock()
    yield
    await drop_db()


@pytest_asyncio.fixture
async def db_session():
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def signer():
    return OutpassTokenSigner("test-outpass-secret")


@pytest.fixture
def notifier():
    return QueuedNotifier()


@pytest.fixture
def make_service(clock, signer, notifier):
    """Builds an OutpassService on the given session with test collaborators."""
    def _make(session, policy=None, notifier_override=None):
        return OutpassService(
            session,
            notifier_override or notifier,
            clock=clock,
            signer=signer,
            policy=policy or SystemPolicy(allow_requests=True, overdue_threshold=3),
            subject_locks=KeyedLock(),
        )
    return _make


# ------------------------------------------------------------------
# USERS (ids only: they stay valid after a session rollback)
# ------------------------------------------------------------------
async def add_user(role: UserRole, **fields) -> uuid.UUID:
    async with AsyncSessionLocal() as session:
        user = User(
            name=fields.pop("name", f"{role.value} {random_str()}"),
            email=fields.pop("email", f"{random_str(role.value.lower())}@test.com"),
            password_hash="pw",
            role=role,
            **fields,
        )
        session.add(user)
        await session.commit()
        return user.id


@pytest_asyncio.fixture
async def people():
    return SimpleNamespace(
        student=await add_user(
            UserRole.Student, name="Asha Verma", roll_number=random_str("21CS"),
            hostel="Block A", room_number="A-114", phone="9990001111",
        ),
        other_student=await add_user(
            UserRole.Student, roll_number=random_str("21EE"), hostel="Block A",
        ),
        warden=await add_user(UserRole.Warden, hostel="Block A"),
        other_warden=await add_user(UserRole.Warden, hostel="Block B"),
        security=await add_user(UserRole.Security, gate="Main Gate"),
        admin=await add_user(UserRole.Admin),
    )


def auth_headers(user_id) -> dict:
    token = create_access_token(subject=str(user_id))
    return {"Authorization": f"Bearer {token}"}


# ------------------------------------------------------------------
# HTTP CLIENT
# ------------------------------------------------------------------
@pytest_asyncio.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
