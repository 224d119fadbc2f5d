import uuid
from datetime import datetime, timedelta

import pytest

from app.core.exceptions import (
    AlreadyProcessed,
    Forbidden,
    InvalidActor,
    InvalidArgument,
    InvalidState,
)
from app.models.enums import OutpassStatus
from app.models.outpass import Outpass
from app.models.user import ResolvedActor, User, UserRole
from app.services.state_machine import (
    OutpassAction,
    TRANSITIONS,
    allowed_actions,
    can_transition,
    plan_approve,
    plan_cancel,
    plan_check_in,
    plan_check_out,
    plan_mark_overdue,
    plan_reject,
)

NOW = datetime(2025, 3, 15, 12, 0)


def actor(role: UserRole) -> ResolvedActor:
    user = User(id=uuid.uuid4(), name=role.value, email=f"{role.value}@t.com", password_hash="pw", role=role)
    return ResolvedActor(kind=role, user=user)


def outpass(status=OutpassStatus.Pending, **fields) -> Outpass:
    return Outpass(
        id=uuid.uuid4(),
        outpass_number="OP-20250315-0001",
        student_id=fields.pop("student_id", uuid.uuid4()),
        purpose="Home visit",
        destination="Lucknow",
        from_date=fields.pop("from_date", NOW - timedelta(hours=2)),
        to_date=fields.pop("to_date", NOW + timedelta(hours=6)),
        status=status,
        **fields,
    )


WARDEN = actor(UserRole.Warden)
SECURITY = actor(UserRole.Security)
STUDENT = actor(UserRole.Student)


# ------------------------------------------------------------
# TRANSITION TABLE
# ------------------------------------------------------------
def test_terminal_statuses_have_no_moves():
    for status in (OutpassStatus.Rejected, OutpassStatus.Cancelled, OutpassStatus.CheckedIn):
        assert allowed_actions(status) == []


def test_overdue_only_accepts_late_check_in():
    assert allowed_actions(OutpassStatus.Overdue) == [OutpassAction.CheckInLate]


def test_every_target_is_a_known_status():
    for (status, action), target in TRANSITIONS.items():
        assert isinstance(target, OutpassStatus)
        assert can_transition(status, action)


# ------------------------------------------------------------
# APPROVE / REJECT
# ------------------------------------------------------------
def test_approve_pending():
    t = plan_approve(outpass(), WARDEN, "Enjoy", NOW)

    assert t.expected == OutpassStatus.Pending
    assert t.target == OutpassStatus.Approved
    assert t.patch["warden_id"] == WARDEN.id
    assert t.patch["approved_at"] == NOW
    assert t.patch["warden_remarks"] == "Enjoy"


def test_approve_requires_warden():
    with pytest.raises(InvalidActor):
        plan_approve(outpass(), SECURITY, None, NOW)
    with pytest.raises(InvalidActor):
        plan_approve(outpass(), None, None, NOW)


@pytest.mark.parametrize("status", [s for s in OutpassStatus if s != OutpassStatus.Pending])
def test_approve_only_from_pending(status):
    with pytest.raises(InvalidState):
        plan_approve(outpass(status), WARDEN, None, NOW)


def test_state_is_checked_before_actor():
    with pytest.raises(InvalidState):
        plan_approve(outpass(OutpassStatus.Approved), STUDENT, None, NOW)


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_reject_requires_reason(reason):
    with pytest.raises(InvalidArgument):
        plan_reject(outpass(), WARDEN, reason, NOW)


def test_reject_pending():
    t = plan_reject(outpass(), WARDEN, "  Exams next week ", NOW)

    assert t.target == OutpassStatus.Rejected
    assert t.patch["rejected_by"] == WARDEN.id
    assert t.patch["rejection_reason"] == "Exams next week"


def test_reject_after_approve_fails():
    with pytest.raises(InvalidState):
        plan_reject(outpass(OutpassStatus.Approved), WARDEN, "Changed my mind", NOW)


# ------------------------------------------------------------
# CANCEL
# ------------------------------------------------------------
@pytest.mark.parametrize("status", [OutpassStatus.Pending, OutpassStatus.Approved])
def test_cancel_by_owner(status):
    owner = uuid.uuid4()
    t = plan_cancel(outpass(status, student_id=owner), str(owner), NOW)
    assert t.target == OutpassStatus.Cancelled


def test_cancel_by_someone_else_is_forbidden():
    with pytest.raises(Forbidden):
        plan_cancel(outpass(), uuid.uuid4(), NOW)


def test_cancel_after_check_out_fails():
    owner = uuid.uuid4()
    with pytest.raises(InvalidState):
        plan_cancel(outpass(OutpassStatus.CheckedOut, student_id=owner), owner, NOW)


# ------------------------------------------------------------
# GATE
# ------------------------------------------------------------
def test_check_out_approved():
    t = plan_check_out(outpass(OutpassStatus.Approved), SECURITY, NOW)

    assert t.target == OutpassStatus.CheckedOut
    assert t.patch["check_out_time"] == NOW
    assert t.unset_field == "check_out_time"


def test_check_out_after_to_date_is_still_allowed():
    o = outpass(OutpassStatus.Approved, to_date=NOW - timedelta(days=1), from_date=NOW - timedelta(days=2))
    assert plan_check_out(o, SECURITY, NOW).target == OutpassStatus.CheckedOut


def test_check_out_with_existing_time_is_already_processed():
    o = outpass(OutpassStatus.Approved, check_out_time=NOW - timedelta(minutes=5))
    with pytest.raises(AlreadyProcessed):
        plan_check_out(o, SECURITY, NOW)


def test_check_out_requires_security():
    with pytest.raises(InvalidActor):
        plan_check_out(outpass(OutpassStatus.Approved), WARDEN, NOW)


@pytest.mark.parametrize("status", [OutpassStatus.Pending, OutpassStatus.Approved])
def test_check_in_before_check_out_fails(status):
    with pytest.raises(InvalidState):
        plan_check_in(outpass(status), SECURITY, NOW)


def test_check_in_on_time():
    o = outpass(OutpassStatus.CheckedOut, check_out_time=NOW - timedelta(hours=1))
    t = plan_check_in(o, SECURITY, NOW)

    assert t.target == OutpassStatus.CheckedIn
    assert t.patch["is_overdue"] is False


def test_check_in_late():
    o = outpass(OutpassStatus.CheckedOut, to_date=NOW - timedelta(minutes=1))
    t = plan_check_in(o, SECURITY, NOW)

    assert t.action == OutpassAction.CheckInLate
    assert t.target == OutpassStatus.Overdue
    assert t.patch["is_overdue"] is True


def test_check_in_exactly_at_to_date_is_on_time():
    o = outpass(OutpassStatus.CheckedOut, to_date=NOW)
    assert plan_check_in(o, SECURITY, NOW).target == OutpassStatus.CheckedIn


def test_swept_outpass_records_check_in_once():
    o = outpass(OutpassStatus.Overdue, to_date=NOW - timedelta(hours=3), is_overdue=True)
    t = plan_check_in(o, SECURITY, NOW)

    assert t.expected == OutpassStatus.Overdue
    assert t.target == OutpassStatus.Overdue
    assert t.patch["check_in_by"] == SECURITY.id

    o.check_in_time = NOW
    with pytest.raises(AlreadyProcessed):
        plan_check_in(o, SECURITY, NOW)


# ------------------------------------------------------------
# SWEEP
# ------------------------------------------------------------
def test_mark_overdue_needs_past_to_date():
    o = outpass(OutpassStatus.CheckedOut, to_date=NOW + timedelta(minutes=1))
    with pytest.raises(InvalidState):
        plan_mark_overdue(o, NOW)

    o.to_date = NOW - timedelta(minutes=1)
    t = plan_mark_overdue(o, NOW)
    assert t.target == OutpassStatus.Overdue
    assert t.patch["is_overdue"] is True


def test_mark_overdue_is_only_for_checked_out():
    o = outpass(OutpassStatus.Overdue, to_date=NOW - timedelta(hours=1))
    with pytest.raises(InvalidState):
        plan_mark_overdue(o, NOW)
