# app/services/state_machine.py

"""
Outpass status transitions.

TRANSITIONS is the only place that decides which (status, action) pairs are
legal. The plan_* functions check an operation's preconditions against a loaded
outpass and return the Transition to apply; they never write. The caller applies
the patch with a compare-and-swap on `expected`, so a record that moved between
the read and the write is rejected the same way as an illegal transition.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from app.core.exceptions import (
    AlreadyProcessed,
    Forbidden,
    InvalidActor,
    InvalidArgument,
    InvalidState,
)
from app.models.enums import OutpassStatus
from app.models.outpass import Outpass
from app.models.user import ResolvedActor, UserRole


class OutpassAction(str, Enum):
    Approve = "approve"
    Reject = "reject"
    Cancel = "cancel"
    CheckOut = "check_out"
    CheckIn = "check_in"
    CheckInLate = "check_in_late"
    MarkOverdue = "mark_overdue"


TRANSITIONS: Dict[tuple, OutpassStatus] = {
    (OutpassStatus.Pending, OutpassAction.Approve): OutpassStatus.Approved,
    (OutpassStatus.Pending, OutpassAction.Reject): OutpassStatus.Rejected,
    (OutpassStatus.Pending, OutpassAction.Cancel): OutpassStatus.Cancelled,
    (OutpassStatus.Approved, OutpassAction.Cancel): OutpassStatus.Cancelled,
    (OutpassStatus.Approved, OutpassAction.CheckOut): OutpassStatus.CheckedOut,
    (OutpassStatus.CheckedOut, OutpassAction.CheckIn): OutpassStatus.CheckedIn,
    (OutpassStatus.CheckedOut, OutpassAction.CheckInLate): OutpassStatus.Overdue,
    (OutpassStatus.CheckedOut, OutpassAction.MarkOverdue): OutpassStatus.Overdue,
    # A swept pass still records the student's return
    (OutpassStatus.Overdue, OutpassAction.CheckInLate): OutpassStatus.Overdue,
}

PRECONDITION_MESSAGES = {
    OutpassAction.Approve: "Only pending outpasses can be approved",
    OutpassAction.Reject: "Only pending outpasses can be rejected",
    OutpassAction.Cancel: "Only pending or approved outpasses can be cancelled",
    OutpassAction.CheckOut: "Only approved outpasses can be checked out",
    OutpassAction.CheckIn: "Only checked out outpasses can be checked in",
    OutpassAction.CheckInLate: "Only checked out outpasses can be checked in",
    OutpassAction.MarkOverdue: "Only checked out outpasses can become overdue",
}


@dataclass
class Transition:
    action: OutpassAction
    expected: OutpassStatus
    target: OutpassStatus
    patch: Dict[str, Any] = field(default_factory=dict)
    # Column that must still be NULL when the swap is applied
    unset_field: Optional[str] = None


def can_transition(current: OutpassStatus, action: OutpassAction) -> bool:
    return (current, action) in TRANSITIONS


def allowed_actions(current: OutpassStatus) -> list[OutpassAction]:
    return [action for (status, action) in TRANSITIONS if status == current]


def next_status(current: OutpassStatus, action: OutpassAction) -> OutpassStatus:
    target = TRANSITIONS.get((current, action))
    if target is None:
        raise InvalidState(PRECONDITION_MESSAGES[action])
    return target


def _require_role(actor: Optional[ResolvedActor], role: UserRole, message: str) -> ResolvedActor:
    if actor is None or actor.kind != role:
        raise InvalidActor(message)
    return actor


# ------------------------------------------------------------
# WARDEN DECISIONS
# ------------------------------------------------------------
def plan_approve(
    outpass: Outpass,
    actor: Optional[ResolvedActor],
    remarks: Optional[str],
    now: datetime,
) -> Transition:
    target = next_status(outpass.status, OutpassAction.Approve)
    warden = _require_role(actor, UserRole.Warden, "Invalid warden")

    return Transition(
        action=OutpassAction.Approve,
        expected=outpass.status,
        target=target,
        patch={
            "status": target,
            "warden_id": warden.id,
            "warden_remarks": remarks,
            "approved_at": now,
            "updated_at": now,
        },
    )


def plan_reject(
    outpass: Outpass,
    actor: Optional[ResolvedActor],
    reason: Optional[str],
    now: datetime,
) -> Transition:
    if not reason or not reason.strip():
        raise InvalidArgument("Rejection reason is required")

    target = next_status(outpass.status, OutpassAction.Reject)
    warden = _require_role(actor, UserRole.Warden, "Invalid warden")

    return Transition(
        action=OutpassAction.Reject,
        expected=outpass.status,
        target=target,
        patch={
            "status": target,
            "rejected_by": warden.id,
            "rejection_reason": reason.strip(),
            "rejected_at": now,
            "updated_at": now,
        },
    )


# ------------------------------------------------------------
# STUDENT
# ------------------------------------------------------------
def plan_cancel(outpass: Outpass, requester_id: Any, now: datetime) -> Transition:
    if str(outpass.student_id) != str(requester_id):
        raise Forbidden("You can only cancel your own outpasses")

    target = next_status(outpass.status, OutpassAction.Cancel)

    return Transition(
        action=OutpassAction.Cancel,
        expected=outpass.status,
        target=target,
        patch={
            "status": target,
            "cancelled_at": now,
            "updated_at": now,
        },
    )


# ------------------------------------------------------------
# GATE
# ------------------------------------------------------------
def plan_check_out(
    outpass: Outpass,
    actor: Optional[ResolvedActor],
    now: datetime,
) -> Transition:
    target = next_status(outpass.status, OutpassAction.CheckOut)

    if outpass.check_out_time is not None:
        raise AlreadyProcessed("Student has already been checked out")

    security = _require_role(actor, UserRole.Security, "Invalid security personnel")

    return Transition(
        action=OutpassAction.CheckOut,
        expected=outpass.status,
        target=target,
        patch={
            "status": target,
            "check_out_time": now,
            "check_out_by": security.id,
            "updated_at": now,
        },
        unset_field="check_out_time",
    )


def plan_check_in(
    outpass: Outpass,
    actor: Optional[ResolvedActor],
    now: datetime,
) -> Transition:
    late = now > outpass.to_date or outpass.status == OutpassStatus.Overdue
    action = OutpassAction.CheckInLate if late else OutpassAction.CheckIn
    target = next_status(outpass.status, action)

    if outpass.check_in_time is not None:
        raise AlreadyProcessed("Student has already been checked in")

    security = _require_role(actor, UserRole.Security, "Invalid security personnel")

    return Transition(
        action=action,
        expected=outpass.status,
        target=target,
        patch={
            "status": target,
            "check_in_time": now,
            "check_in_by": security.id,
            "is_overdue": late,
            "updated_at": now,
        },
        unset_field="check_in_time",
    )


# ------------------------------------------------------------
# SWEEP
# ------------------------------------------------------------
def plan_mark_overdue(outpass: Outpass, now: datetime) -> Transition:
    target = next_status(outpass.status, OutpassAction.MarkOverdue)

    if not outpass.to_date < now:
        raise InvalidState("Outpass is not past its return time")

    return Transition(
        action=OutpassAction.MarkOverdue,
        expected=outpass.status,
        target=target,
        patch={
            "status": target,
            "is_overdue": True,
            "updated_at": now,
        },
    )
