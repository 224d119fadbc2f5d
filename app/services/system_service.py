# app/services/system_service.py

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.config import settings
from app.models.system_setting import SYSTEM_SETTINGS_ID, SystemSetting


@dataclass(frozen=True)
class SystemPolicy:
    allow_requests: bool
    overdue_threshold: int
    updated_at: Optional[datetime] = None
    updated_by: Optional[UUID] = None

    @classmethod
    def from_settings(cls) -> "SystemPolicy":
        return cls(
            allow_requests=settings.ALLOW_OUTPASS_REQUESTS,
            overdue_threshold=settings.OVERDUE_THRESHOLD,
        )

    @classmethod
    def from_row(cls, row: SystemSetting) -> "SystemPolicy":
        return cls(
            allow_requests=row.allow_requests,
            overdue_threshold=row.overdue_threshold,
            updated_at=row.updated_at,
            updated_by=row.updated_by,
        )


class PolicyStore:
    """
    Holds the current SystemPolicy snapshot for the application. Services get
    the snapshot at construction; it only changes through reload() or update().
    """

    def __init__(self, policy: Optional[SystemPolicy] = None):
        self._policy = policy or SystemPolicy.from_settings()

    @property
    def current(self) -> SystemPolicy:
        return self._policy

    async def reload(self, session: AsyncSession) -> SystemPolicy:
        row = await session.get(SystemSetting, SYSTEM_SETTINGS_ID, populate_existing=True)
        if row is None:
            logger.info("No stored system settings, keeping configured defaults.")
            return self._policy

        self._policy = SystemPolicy.from_row(row)
        logger.info(
            f"System policy reloaded: allow_requests={self._policy.allow_requests}, "
            f"overdue_threshold={self._policy.overdue_threshold}"
        )
        return self._policy

    async def update(
        self,
        session: AsyncSession,
        allow_requests: Optional[bool] = None,
        overdue_threshold: Optional[int] = None,
        updated_by: Optional[UUID] = None,
    ) -> SystemPolicy:
        if overdue_threshold is not None and overdue_threshold < 0:
            raise ValueError("overdue_threshold cannot be negative")

        row = await session.get(SystemSetting, SYSTEM_SETTINGS_ID)
        if row is None:
            row = SystemSetting(
                id=SYSTEM_SETTINGS_ID,
                allow_requests=self._policy.allow_requests,
                overdue_threshold=self._policy.overdue_threshold,
            )

        if allow_requests is not None:
            row.allow_requests = allow_requests
        if overdue_threshold is not None:
            row.overdue_threshold = overdue_threshold
        row.updated_by = updated_by
        row.updated_at = utcnow()

        session.add(row)
        await session.commit()
        await session.refresh(row)

        self._policy = SystemPolicy.from_row(row)
        return self._policy
