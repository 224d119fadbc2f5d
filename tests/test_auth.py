import pytest

from app.core.database import AsyncSessionLocal
from app.models.user import UserRole
from app.services.auth_service import create_user


async def seed_student():
    async with AsyncSessionLocal() as session:
        await create_user(
            session,
            name="Login Student",
            email="login.student@test.com",
            password="pass1234",
            role=UserRole.Student,
            roll_number="21CS999",
            hostel="Block C",
        )


@pytest.mark.asyncio
async def test_login_with_email(client):
    await seed_student()

    res = await client.post("/api/auth/login", json={"identifier": "login.student@test.com", "password": "pass1234"})
    assert res.status_code == 200
    body = res.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "Student"

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["roll_number"] == "21CS999"


@pytest.mark.asyncio
async def test_login_with_roll_number(client):
    await seed_student()

    res = await client.post("/api/auth/login", json={"identifier": "21cs999", "password": "pass1234"})
    assert res.status_code == 200


@pytest.mark.asyncio
async def test_login_wrong_password(client):
    await seed_student()

    res = await client.post("/api/auth/login", json={"identifier": "21CS999", "password": "nope"})
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_garbage_bearer_token(client):
    res = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401
