# app/services/notification_service.py

from typing import Any, Dict, List, Tuple
from uuid import UUID

from fastapi import BackgroundTasks
from loguru import logger
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from starlette.concurrency import run_in_threadpool

from app.core.database import AsyncSessionLocal
from app.models.enums import NotificationKind
from app.models.notification import Notification
from app.models.user import User
from app.services.email_service import send_outpass_email

# kind -> (title, message). Messages are formatted with the notification payload.
NOTIFICATION_TEXT = {
    NotificationKind.Created: (
        "Outpass Requested",
        "Outpass {outpass_number} to {destination} has been submitted and is awaiting warden approval.",
    ),
    NotificationKind.Approved: (
        "Outpass Approved",
        "Outpass {outpass_number} has been approved. Show the pass QR code at the gate.",
    ),
    NotificationKind.Rejected: (
        "Outpass Rejected",
        "Outpass {outpass_number} has been rejected.",
    ),
    NotificationKind.Cancelled: (
        "Outpass Cancelled",
        "Outpass {outpass_number} has been cancelled.",
    ),
    NotificationKind.CheckedOut: (
        "Checked Out",
        "You have been checked out of campus on outpass {outpass_number}.",
    ),
    NotificationKind.CheckedIn: (
        "Checked In",
        "Welcome back. Outpass {outpass_number} is now closed.",
    ),
    NotificationKind.Overdue: (
        "Outpass Overdue",
        "Outpass {outpass_number} is past its return time.",
    ),
}


class _Blank(dict):
    def __missing__(self, key):
        return "-"


def render_notification(kind: NotificationKind, payload: Dict[str, Any]) -> Tuple[str, str]:
    title, template = NOTIFICATION_TEXT[kind]
    return title, template.format_map(_Blank(payload))


# ============================================================
# NOTIFIERS (what the outpass core talks to)
# ============================================================
class Notifier:
    """Fire-and-forget sink. notify() must return without waiting for delivery."""

    def notify(self, kind: NotificationKind, subject_id: UUID, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class BackgroundNotifier(Notifier):
    """Delivers after the HTTP response has been sent."""

    def __init__(self, background_tasks: BackgroundTasks):
        self.background_tasks = background_tasks

    def notify(self, kind, subject_id, payload):
        self.background_tasks.add_task(deliver_notification, kind, subject_id, payload)


class QueuedNotifier(Notifier):
    """Collects notifications; flush() delivers them. Used by the overdue sweep timer."""

    def __init__(self):
        self.pending: List[Tuple[NotificationKind, UUID, Dict[str, Any]]] = []

    def notify(self, kind, subject_id, payload):
        self.pending.append((kind, subject_id, payload))

    async def flush(self) -> int:
        queued, self.pending = self.pending, []
        for kind, subject_id, payload in queued:
            await deliver_notification(kind, subject_id, payload)
        return len(queued)


# ============================================================
# DELIVERY
# ============================================================
async def deliver_notification(kind: NotificationKind, user_id: UUID, payload: Dict[str, Any]):
    """
    Stores the in-app notification and emails the recipient, in a separate DB
    session. Failures are logged and swallowed: the outpass change that caused
    this notification is already committed.
    """
    title, message = render_notification(kind, payload)

    async with AsyncSessionLocal() as session:
        try:
            user = await session.get(User, user_id)
            if not user:
                logger.warning(f"Notification {kind.value} dropped: user {user_id} not found")
                return

            outpass_id = payload.get("outpass_id")
            session.add(Notification(
                user_id=user.id,
                kind=kind.value,
                title=title,
                message=message,
                data=payload,
                outpass_id=UUID(outpass_id) if outpass_id else None,
            ))
            await session.commit()

            email, name = user.email, user.name
            logger.info(f"Notification created for user {user_id}: {kind.value}")

        except Exception:
            logger.exception(f"Failed to store notification {kind.value} for {user_id}")
            await session.rollback()
            return

    await run_in_threadpool(send_outpass_email, email, name, title, message, payload)


# ============================================================
# INBOX
# ============================================================
async def list_notifications(
    session: AsyncSession,
    user_id: UUID,
    unread_only: bool = False,
    page: int = 1,
    limit: int = 20,
) -> Dict[str, Any]:
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.read.is_(False))

    result = await session.execute(
        query.order_by(Notification.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    notifications = result.scalars().all()

    unread = await session.execute(
        select(Notification.id)
        .where(Notification.user_id == user_id)
        .where(Notification.read.is_(False))
    )

    return {
        "notifications": notifications,
        "unread_count": len(unread.all()),
        "page": page,
        "limit": limit,
    }


async def mark_as_read(session: AsyncSession, user_id: UUID, notification_id: UUID) -> bool:
    result = await session.execute(
        update(Notification)
        .where(Notification.id == notification_id)
        .where(Notification.user_id == user_id)
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return result.rowcount == 1


async def mark_all_as_read(session: AsyncSession, user_id: UUID) -> int:
    result = await session.execute(
        update(Notification)
        .where(Notification.user_id == user_id)
        .where(Notification.read.is_(False))
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return result.rowcount
