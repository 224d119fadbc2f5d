# app/services/outpass_service.py

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, normalize_utc, system_clock
from app.core.exceptions import (
    ConflictingInterval,
    Forbidden,
    InvalidArgument,
    InvalidInterval,
    InvalidState,
    InvalidSubject,
    NotFound,
    OutpassError,
    RequestsSuspended,
)
from app.core.locks import KeyedLock
from app.core.security import OutpassTokenSigner, get_outpass_signer
from app.models.enums import NotificationKind, OutpassStatus, OutpassType
from app.models.outpass import Outpass
from app.models.user import User, UserRole
from app.services.auth_service import get_wardens_for_hostel, resolve_actor
from app.services.notification_service import Notifier
from app.services.outpass_repository import OutpassRepository
from app.services.overlap import find_overlap
from app.services.state_machine import (
    PRECONDITION_MESSAGES,
    Transition,
    plan_approve,
    plan_cancel,
    plan_check_in,
    plan_check_out,
    plan_mark_overdue,
    plan_reject,
)
from app.services.system_service import SystemPolicy
from app.services.verification_service import VerificationGate


@dataclass
class OutpassDetails:
    destination: str
    purpose: str
    type: OutpassType = OutpassType.Local


@dataclass
class OutpassView:
    """An outpass together with the student it belongs to, for display."""
    outpass: Outpass
    student: Optional[User] = None


def notification_payload(outpass: Outpass, **extra: Any) -> Dict[str, Any]:
    payload = {
        "outpass_id": str(outpass.id),
        "outpass_number": outpass.outpass_number,
        "destination": outpass.destination,
        "from_date": outpass.from_date.isoformat(),
        "to_date": outpass.to_date.isoformat(),
        "status": OutpassStatus(outpass.status).value,
    }
    payload.update({k: v for k, v in extra.items() if v is not None})
    return payload


class OutpassService:
    """
    Every outpass mutation goes through this class. It resolves actors, asks the
    state machine for a transition, applies it with a compare-and-swap and then
    emits notifications. Notifications are sent after the commit and never undo it.
    """

    def __init__(
        self,
        session: AsyncSession,
        notifier: Notifier,
        clock: Optional[Clock] = None,
        signer: Optional[OutpassTokenSigner] = None,
        policy: Optional[SystemPolicy] = None,
        subject_locks: Optional[KeyedLock] = None,
    ):
        self.session = session
        self.repository = OutpassRepository(session)
        self.notifier = notifier
        self.clock = clock or system_clock
        self.signer = signer or get_outpass_signer()
        self.policy = policy or SystemPolicy.from_settings()
        self.subject_locks = subject_locks or KeyedLock()
        self.gate = VerificationGate(self.repository, self.signer, self.clock)

    # ============================================================
    # REQUEST
    # ============================================================
    async def request_outpass(
        self,
        student_id: Any,
        from_date: datetime,
        to_date: datetime,
        details: OutpassDetails,
    ) -> Outpass:
        now = self.clock.now()

        # ---------------------------------------
        # 1. Subject must be a student
        # ---------------------------------------
        actor = await resolve_actor(self.session, student_id)
        if actor is None or actor.kind != UserRole.Student:
            raise InvalidSubject()
        student_id, hostel = actor.id, actor.user.hostel

        # ---------------------------------------
        # 2. Interval and details
        # ---------------------------------------
        from_date, to_date = normalize_utc(from_date), normalize_utc(to_date)
        if to_date <= from_date:
            raise InvalidInterval("Return date must be after departure date")
        if from_date < now:
            raise InvalidInterval("Departure date cannot be in the past")
        if not details.destination or not details.destination.strip():
            raise InvalidArgument("Destination is required")
        if not details.purpose or not details.purpose.strip():
            raise InvalidArgument("Purpose is required")

        # ---------------------------------------
        # 3. System policy
        # ---------------------------------------
        await self._check_policy(student_id)

        # ---------------------------------------
        # 4. Overlap check + insert, one student at a time
        # ---------------------------------------
        async with self.subject_locks.hold(student_id):
            try:
                await self.repository.lock_subject(student_id)

                existing = await self.repository.find_live_outpasses_for(student_id)
                conflict = find_overlap(existing, from_date, to_date)
                if conflict:
                    raise ConflictingInterval(
                        f"You have an overlapping outpass request ({conflict.outpass_number})"
                    )

                outpass = await self.repository.create_outpass(
                    Outpass(
                        student_id=student_id,
                        type=details.type,
                        purpose=details.purpose.strip(),
                        destination=details.destination.strip(),
                        from_date=from_date,
                        to_date=to_date,
                        status=OutpassStatus.Pending,
                        created_at=now,
                        updated_at=now,
                    ),
                    now,
                )
            except OutpassError:
                await self.repository.rollback()
                raise

        logger.info(f"Outpass {outpass.outpass_number} requested by student {student_id}")

        # ---------------------------------------
        # 5. Notify student + hostel wardens
        # ---------------------------------------
        payload = notification_payload(outpass)
        self._emit(NotificationKind.Created, student_id, payload)
        for warden in await get_wardens_for_hostel(self.session, hostel):
            self._emit(NotificationKind.Created, warden.id, payload)

        return outpass

    async def _check_policy(self, student_id: UUID) -> None:
        if not self.policy.allow_requests:
            raise RequestsSuspended()

        threshold = self.policy.overdue_threshold
        if threshold > 0:
            overdue = await self.repository.count_overdue_returns(student_id)
            if overdue >= threshold:
                raise RequestsSuspended(
                    f"You have {overdue} overdue returns. Contact your warden before requesting a new outpass."
                )

    # ============================================================
    # TRANSITIONS
    # ============================================================
    async def _run(self, outpass_id: Any, plan: Callable[[Outpass], Transition]) -> Outpass:
        outpass = await self.repository.get_outpass(outpass_id, refresh=True)
        if not outpass:
            raise NotFound()

        transition = plan(outpass)
        # A lost swap rolls back, which expires `outpass`
        record_id, number = outpass.id, outpass.outpass_number

        updated = await self.repository.compare_and_set_status(
            record_id,
            transition.expected,
            transition.patch,
            unset_field=transition.unset_field,
        )
        if updated is None:
            # Someone else moved the record after we read it
            logger.info(f"Concurrent update on {number}, {transition.action.value} lost the race")
            raise InvalidState(PRECONDITION_MESSAGES[transition.action])

        logger.info(
            f"Outpass {updated.outpass_number}: {transition.expected.value} -> "
            f"{transition.target.value} ({transition.action.value})"
        )
        return updated

    async def approve(self, outpass_id: Any, warden_id: Any, remarks: Optional[str] = None) -> Outpass:
        actor = await resolve_actor(self.session, warden_id)
        now = self.clock.now()

        def plan(outpass: Outpass) -> Transition:
            transition = plan_approve(outpass, actor, remarks, now)
            transition.patch["verification_token"] = self.signer.issue(
                outpass.id, outpass.student_id, now
            )
            return transition

        outpass = await self._run(outpass_id, plan)
        self._emit(
            NotificationKind.Approved,
            outpass.student_id,
            notification_payload(outpass, remarks=remarks),
        )
        return outpass

    async def reject(self, outpass_id: Any, warden_id: Any, reason: Optional[str]) -> Outpass:
        actor = await resolve_actor(self.session, warden_id)
        now = self.clock.now()

        outpass = await self._run(outpass_id, lambda o: plan_reject(o, actor, reason, now))
        self._emit(
            NotificationKind.Rejected,
            outpass.student_id,
            notification_payload(outpass, remarks=outpass.rejection_reason),
        )
        return outpass

    async def cancel(self, outpass_id: Any, requester_id: Any) -> Outpass:
        now = self.clock.now()

        outpass = await self._run(outpass_id, lambda o: plan_cancel(o, requester_id, now))
        self._emit(NotificationKind.Cancelled, outpass.student_id, notification_payload(outpass))
        return outpass

    async def check_out(self, outpass_id: Any, security_id: Any) -> Outpass:
        actor = await resolve_actor(self.session, security_id)
        now = self.clock.now()

        outpass = await self._run(outpass_id, lambda o: plan_check_out(o, actor, now))
        self._emit(NotificationKind.CheckedOut, outpass.student_id, notification_payload(outpass))
        return outpass

    async def check_in(self, outpass_id: Any, security_id: Any) -> Outpass:
        actor = await resolve_actor(self.session, security_id)
        now = self.clock.now()

        outpass = await self._run(outpass_id, lambda o: plan_check_in(o, actor, now))
        kind = (
            NotificationKind.Overdue
            if outpass.status == OutpassStatus.Overdue
            else NotificationKind.CheckedIn
        )
        self._emit(kind, outpass.student_id, notification_payload(outpass))
        return outpass

    async def sweep_overdue(self, now: Optional[datetime] = None) -> List[str]:
        """
        Mark every checked-out pass past its return time as overdue. Safe to run
        next to check-ins: a pass that moved in the meantime is skipped.
        Returns the numbers of the outpasses this run changed.
        """
        now = now or self.clock.now()

        # Ids only: a lost swap rolls back and expires loaded records
        candidate_ids = [o.id for o in await self.repository.find_overdue_candidates(now)]

        swept = []
        for outpass_id in candidate_ids:
            try:
                outpass = await self._run(outpass_id, lambda o: plan_mark_overdue(o, now))
            except OutpassError as e:
                logger.debug(f"Overdue sweep skipped {outpass_id}: {e.message}")
                continue

            swept.append(outpass.outpass_number)
            self._emit(NotificationKind.Overdue, outpass.student_id, notification_payload(outpass))

        if swept:
            logger.info(f"Overdue sweep marked {len(swept)} outpass(es): {', '.join(swept)}")
        return swept

    # ============================================================
    # GATE SCAN
    # ============================================================
    async def scan_and_verify(self, token: str) -> OutpassView:
        outpass = await self.gate.verify(token)
        students = await self.repository.get_students([outpass.student_id])
        return OutpassView(outpass, students.get(outpass.student_id))

    # ============================================================
    # QUERIES
    # ============================================================
    async def _views(self, outpasses: List[Outpass]) -> List[OutpassView]:
        students = await self.repository.get_students(o.student_id for o in outpasses)
        return [OutpassView(o, students.get(o.student_id)) for o in outpasses]

    async def get_outpass_view(self, outpass_id: Any, requester: User) -> OutpassView:
        outpass = await self.repository.get_outpass(outpass_id)
        if not outpass:
            raise NotFound()

        if requester.role == UserRole.Student and outpass.student_id != requester.id:
            raise Forbidden("You can only view your own outpasses")

        return (await self._views([outpass]))[0]

    async def list_my_outpasses(
        self,
        student_id: UUID,
        status: Optional[OutpassStatus] = None,
        type: Optional[OutpassType] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[OutpassView], int]:
        outpasses, total = await self.repository.list_for_student(
            student_id, status=status, type=type, page=page, limit=limit
        )
        return await self._views(outpasses), total

    async def pending_for_warden(
        self, warden: User, page: int = 1, limit: int = 20
    ) -> Tuple[List[OutpassView], int]:
        outpasses, total = await self.repository.list_for_hostel(
            warden.hostel,
            status=OutpassStatus.Pending,
            oldest_first=True,
            page=page,
            limit=limit,
        )
        return await self._views(outpasses), total

    async def list_for_warden(
        self,
        warden: User,
        status: Optional[OutpassStatus] = None,
        type: Optional[OutpassType] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[OutpassView], int]:
        outpasses, total = await self.repository.list_for_hostel(
            warden.hostel,
            status=status,
            type=type,
            from_date=normalize_utc(from_date) if from_date else None,
            to_date=normalize_utc(to_date) if to_date else None,
            page=page,
            limit=limit,
        )
        return await self._views(outpasses), total

    async def active_outpasses(self) -> List[OutpassView]:
        return await self._views(await self.repository.list_active())

    async def past_due_outpasses(self) -> List[OutpassView]:
        return await self._views(await self.repository.list_past_due(self.clock.now()))

    async def student_stats(self, student_id: UUID) -> Dict[str, int]:
        return await self.repository.student_stats(student_id)

    async def warden_stats(self, warden: User) -> Dict[str, int]:
        return await self.repository.warden_stats(warden.hostel, self.clock.now())

    async def security_stats(self) -> Dict[str, int]:
        return await self.repository.security_stats(self.clock.now())

    # ============================================================
    # NOTIFICATIONS
    # ============================================================
    def _emit(self, kind: NotificationKind, recipient_id: UUID, payload: Dict[str, Any]) -> None:
        try:
            self.notifier.notify(kind, recipient_id, payload)
        except Exception:
            logger.exception(f"Failed to queue {kind.value} notification for {recipient_id}")
