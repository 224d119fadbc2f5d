import pytest
from unittest.mock import patch

from sqlmodel import select

from app.core.database import AsyncSessionLocal
from app.models.enums import NotificationKind
from app.models.notification import Notification
from app.services.notification_service import QueuedNotifier, deliver_notification
from conftest import auth_headers

PAYLOAD = {
    "outpass_number": "OP-20250314-0001",
    "destination": "Agra",
    "status": "approved",
}


@pytest.mark.asyncio
async def test_deliver_stores_inbox_entry_and_emails(people):
    with patch("app.services.notification_service.send_outpass_email") as mock_email:
        await deliver_notification(NotificationKind.Approved, people.student, PAYLOAD)

    async with AsyncSessionLocal() as session:
        note = (await session.execute(
            select(Notification).where(Notification.user_id == people.student)
        )).scalar_one()

    assert note.kind == "outpass_approved"
    assert note.title == "Outpass Approved"
    assert "OP-20250314-0001" in note.message
    assert note.read is False

    mock_email.assert_called_once()
    assert mock_email.call_args[0][1] == "Asha Verma"


@pytest.mark.asyncio
async def test_deliver_to_unknown_user_is_dropped():
    import uuid

    with patch("app.services.notification_service.send_outpass_email") as mock_email:
        await deliver_notification(NotificationKind.Approved, uuid.uuid4(), PAYLOAD)

    mock_email.assert_not_called()


@pytest.mark.asyncio
async def test_queued_notifier_flushes_in_order(people):
    notifier = QueuedNotifier()
    notifier.notify(NotificationKind.CheckedOut, people.student, PAYLOAD)
    notifier.notify(NotificationKind.Overdue, people.student, PAYLOAD)

    with patch("app.services.notification_service.send_outpass_email"):
        assert await notifier.flush() == 2

    assert notifier.pending == []


@pytest.mark.asyncio
async def test_inbox_endpoints(client, people):
    with patch("app.services.notification_service.send_outpass_email"):
        await deliver_notification(NotificationKind.Created, people.student, PAYLOAD)
        await deliver_notification(NotificationKind.Approved, people.student, PAYLOAD)
        await deliver_notification(NotificationKind.Created, people.warden, PAYLOAD)

    headers = auth_headers(people.student)

    res = await client.get("/api/notifications/", headers=headers)
    assert res.status_code == 200
    body = res.json()
    assert body["unread_count"] == 2
    assert len(body["notifications"]) == 2

    first_id = body["notifications"][0]["id"]
    res = await client.post(f"/api/notifications/{first_id}/read", headers=headers)
    assert res.status_code == 200

    res = await client.get("/api/notifications/?unread_only=true", headers=headers)
    assert res.json()["unread_count"] == 1
    assert len(res.json()["notifications"]) == 1

    # Someone else's notification
    res = await client.post(f"/api/notifications/{first_id}/read", headers=auth_headers(people.warden))
    assert res.status_code == 404

    res = await client.post("/api/notifications/read-all", headers=headers)
    assert res.json()["updated"] == 1
