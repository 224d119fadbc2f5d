# app/services/outpass_repository.py

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from loguru import logger
from sqlalchemy import func, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.enums import LIVE_STATUSES, OutpassStatus, OutpassType
from app.models.outpass import Outpass, OutpassSequence
from app.models.user import User


def format_outpass_number(day: str, value: int) -> str:
    return f"OP-{day}-{value:04d}"


def sequence_upsert(dialect_name: str, day: str):
    """INSERT ... ON CONFLICT (day) DO UPDATE ... RETURNING last_value."""
    insert = sqlite_insert if dialect_name == "sqlite" else pg_insert
    stmt = insert(OutpassSequence).values(day=day, last_value=1)
    return stmt.on_conflict_do_update(
        index_elements=["day"],
        set_={"last_value": OutpassSequence.last_value + 1},
    ).returning(OutpassSequence.last_value)


class OutpassRepository:
    """
    Persistence for outpasses. Writes commit their own transaction; status
    changes go through compare_and_set_status only.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------
    # READS
    # ------------------------------------------------------------
    async def get_outpass(self, outpass_id: Any, refresh: bool = False) -> Optional[Outpass]:
        if not isinstance(outpass_id, UUID):
            try:
                outpass_id = UUID(str(outpass_id))
            except ValueError:
                return None

        query = select(Outpass).where(Outpass.id == outpass_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_live_outpasses_for(self, student_id: UUID) -> list[Outpass]:
        result = await self.session.execute(
            select(Outpass)
            .where(Outpass.student_id == student_id)
            .where(Outpass.status.in_(LIVE_STATUSES))
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def find_overdue_candidates(self, now: datetime) -> list[Outpass]:
        result = await self.session.execute(
            select(Outpass)
            .where(Outpass.status == OutpassStatus.CheckedOut)
            .where(Outpass.to_date < now)
            .order_by(Outpass.to_date.asc())
        )
        return list(result.scalars().all())

    async def count_overdue_returns(self, student_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(Outpass)
            .where(Outpass.student_id == student_id)
            .where(Outpass.is_overdue.is_(True))
        )
        return result.scalar_one()

    async def get_students(self, student_ids: Iterable[UUID]) -> Dict[UUID, User]:
        ids = set(student_ids)
        if not ids:
            return {}
        result = await self.session.execute(select(User).where(User.id.in_(ids)))
        return {user.id: user for user in result.scalars().all()}

    # ------------------------------------------------------------
    # CREATE
    # ------------------------------------------------------------
    async def lock_subject(self, student_id: UUID) -> None:
        """Row lock on the student for the rest of the transaction (no-op on SQLite)."""
        await self.session.execute(
            select(User.id).where(User.id == student_id).with_for_update()
        )

    async def next_outpass_number(self, now: datetime) -> str:
        day = now.strftime("%Y%m%d")
        dialect = self.session.get_bind().dialect.name

        # One upsert: the first writer of the day inserts, later ones bump the
        # counter under the row lock until commit
        result = await self.session.execute(sequence_upsert(dialect, day))
        return format_outpass_number(day, result.scalar_one())

    async def create_outpass(self, outpass: Outpass, now: datetime) -> Outpass:
        try:
            outpass.outpass_number = await self.next_outpass_number(now)
            self.session.add(outpass)
            await self.session.commit()
            await self.session.refresh(outpass)
            return outpass

        except IntegrityError:
            await self.session.rollback()
            logger.exception("IntegrityError while creating outpass")
            raise

    async def rollback(self) -> None:
        await self.session.rollback()

    # ------------------------------------------------------------
    # COMPARE-AND-SWAP
    # ------------------------------------------------------------
    async def compare_and_set_status(
        self,
        outpass_id: UUID,
        expected: OutpassStatus,
        patch: Dict[str, Any],
        unset_field: Optional[str] = None,
    ) -> Optional[Outpass]:
        """
        Apply `patch` only if the row is still in `expected` status (and
        `unset_field` is still NULL). Returns the updated record, or None when
        another writer got there first.
        """
        stmt = (
            update(Outpass)
            .where(Outpass.id == outpass_id)
            .where(Outpass.status == expected)
        )
        if unset_field:
            stmt = stmt.where(getattr(Outpass, unset_field).is_(None))

        result = await self.session.execute(
            stmt.values(**patch).execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            await self.session.rollback()
            return None

        await self.session.commit()
        return await self.get_outpass(outpass_id, refresh=True)

    # ------------------------------------------------------------
    # LISTINGS
    # ------------------------------------------------------------
    async def _paginate(self, query, page: int, limit: int) -> tuple[list[Outpass], int]:
        count_q = select(func.count()).select_from(query.order_by(None).subquery())
        total = (await self.session.execute(count_q)).scalar_one()

        rows = await self.session.execute(query.offset((page - 1) * limit).limit(limit))
        return list(rows.scalars().all()), total

    async def list_for_student(
        self,
        student_id: UUID,
        status: Optional[OutpassStatus] = None,
        type: Optional[OutpassType] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Outpass], int]:
        query = select(Outpass).where(Outpass.student_id == student_id)
        if status:
            query = query.where(Outpass.status == status)
        if type:
            query = query.where(Outpass.type == type)
        query = query.order_by(Outpass.created_at.desc())
        return await self._paginate(query, page, limit)

    async def list_for_hostel(
        self,
        hostel: Optional[str],
        status: Optional[OutpassStatus] = None,
        type: Optional[OutpassType] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        oldest_first: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Outpass], int]:
        query = select(Outpass).join(User, User.id == Outpass.student_id)
        if hostel:
            query = query.where(User.hostel == hostel)
        if status:
            query = query.where(Outpass.status == status)
        if type:
            query = query.where(Outpass.type == type)
        if from_date:
            query = query.where(Outpass.from_date >= from_date)
        if to_date:
            query = query.where(Outpass.to_date <= to_date)

        order = Outpass.created_at.asc() if oldest_first else Outpass.created_at.desc()
        return await self._paginate(query.order_by(order), page, limit)

    async def list_active(self) -> list[Outpass]:
        result = await self.session.execute(
            select(Outpass)
            .where(Outpass.status == OutpassStatus.CheckedOut)
            .order_by(Outpass.check_out_time.desc())
        )
        return list(result.scalars().all())

    async def list_past_due(self, now: datetime) -> list[Outpass]:
        """Approved or checked-out passes whose return time has passed."""
        result = await self.session.execute(
            select(Outpass)
            .where(Outpass.status.in_([OutpassStatus.Approved, OutpassStatus.CheckedOut]))
            .where(Outpass.to_date < now)
            .order_by(Outpass.to_date.asc())
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------
    # STATISTICS
    # ------------------------------------------------------------
    async def count(self, *conditions, hostel: Optional[str] = None) -> int:
        query = select(func.count(Outpass.id)).select_from(Outpass)
        if hostel:
            query = query.join(User, User.id == Outpass.student_id).where(User.hostel == hostel)
        for condition in conditions:
            query = query.where(condition)
        return (await self.session.execute(query)).scalar_one()

    async def student_stats(self, student_id: UUID) -> Dict[str, int]:
        mine = Outpass.student_id == student_id
        return {
            "total_outpasses": await self.count(mine),
            "pending_outpasses": await self.count(mine, Outpass.status == OutpassStatus.Pending),
            "approved_outpasses": await self.count(mine, Outpass.status == OutpassStatus.Approved),
            "rejected_outpasses": await self.count(mine, Outpass.status == OutpassStatus.Rejected),
            "active_outpasses": await self.count(mine, Outpass.status == OutpassStatus.CheckedOut),
            "overdue_outpasses": await self.count(mine, Outpass.status == OutpassStatus.Overdue),
        }

    async def warden_stats(self, hostel: Optional[str], now: datetime) -> Dict[str, int]:
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end_of_day = start_of_day + timedelta(days=1)
        return {
            "total_requests": await self.count(hostel=hostel),
            "pending_requests": await self.count(
                Outpass.status == OutpassStatus.Pending, hostel=hostel
            ),
            "approved_today": await self.count(
                Outpass.approved_at >= start_of_day, Outpass.approved_at < end_of_day, hostel=hostel
            ),
            "rejected_today": await self.count(
                Outpass.rejected_at >= start_of_day, Outpass.rejected_at < end_of_day, hostel=hostel
            ),
            "active_outpasses": await self.count(
                Outpass.status == OutpassStatus.CheckedOut, hostel=hostel
            ),
            "overdue_outpasses": await self.count(
                Outpass.status == OutpassStatus.Overdue, hostel=hostel
            ),
        }

    async def security_stats(self, now: datetime) -> Dict[str, int]:
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end_of_day = start_of_day + timedelta(days=1)
        return {
            "total_check_outs": await self.count(Outpass.check_out_time.is_not(None)),
            "total_check_ins": await self.count(Outpass.check_in_time.is_not(None)),
            "active_outpasses": await self.count(Outpass.status == OutpassStatus.CheckedOut),
            "overdue_outpasses": await self.count(Outpass.status == OutpassStatus.Overdue),
            "check_outs_today": await self.count(
                Outpass.check_out_time >= start_of_day, Outpass.check_out_time < end_of_day
            ),
            "check_ins_today": await self.count(
                Outpass.check_in_time >= start_of_day, Outpass.check_in_time < end_of_day
            ),
        }
