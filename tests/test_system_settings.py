import pytest
from datetime import datetime, timedelta, timezone

from app.core.database import AsyncSessionLocal
from app.services.system_service import PolicyStore, SystemPolicy
from conftest import auth_headers


@pytest.mark.asyncio
async def test_defaults_come_from_settings():
    policy = PolicyStore().current
    assert policy == SystemPolicy.from_settings()
    assert policy.overdue_threshold == 3


@pytest.mark.asyncio
async def test_update_persists_and_reload_reads_it(people):
    store = PolicyStore()

    async with AsyncSessionLocal() as session:
        updated = await store.update(session, allow_requests=False, updated_by=people.admin)

    assert updated.allow_requests is False
    assert updated.overdue_threshold == 3
    assert store.current is updated

    # A fresh store (e.g. another worker) only sees it after reload
    other = PolicyStore()
    assert other.current.allow_requests is True
    async with AsyncSessionLocal() as session:
        await other.reload(session)
    assert other.current.allow_requests is False
    assert other.current.updated_by == people.admin


@pytest.mark.asyncio
async def test_negative_threshold_rejected():
    async with AsyncSessionLocal() as session:
        with pytest.raises(ValueError):
            await PolicyStore().update(session, overdue_threshold=-1)


@pytest.mark.asyncio
async def test_settings_endpoints_switch_requests_off(client, people):
    admin = auth_headers(people.admin)

    res = await client.get("/api/system/settings", headers=admin)
    assert res.status_code == 200
    assert res.json()["allow_requests"] is True

    res = await client.put("/api/system/settings", json={"allow_requests": False}, headers=admin)
    assert res.status_code == 200
    assert res.json()["allow_requests"] is False

    # New requests are refused straight away
    start = datetime.now(timezone.utc) + timedelta(days=1)
    res = await client.post(
        "/api/outpasses/",
        json={
            "purpose": "Shopping",
            "destination": "Mall",
            "from_date": start.isoformat(),
            "to_date": (start + timedelta(hours=3)).isoformat(),
        },
        headers=auth_headers(people.student),
    )
    assert res.status_code == 403

    res = await client.post("/api/system/settings/reload", headers=admin)
    assert res.json()["allow_requests"] is False

    res = await client.get("/api/system/audit-logs", headers=admin)
    assert [log["action"] for log in res.json()] == ["SYSTEM_SETTINGS_UPDATED"]


@pytest.mark.asyncio
async def test_settings_are_admin_only(client, people):
    res = await client.put(
        "/api/system/settings", json={"overdue_threshold": 1}, headers=auth_headers(people.warden)
    )
    assert res.status_code == 403

    res = await client.put(
        "/api/system/settings", json={"overdue_threshold": -2}, headers=auth_headers(people.admin)
    )
    assert res.status_code == 422
