import uuid
from datetime import datetime, timedelta

from app.models.enums import OutpassStatus
from app.models.outpass import Outpass
from app.services.overlap import find_overlap, intervals_overlap

DAY = datetime(2025, 3, 15)


def existing(start_h, end_h, status=OutpassStatus.Approved):
    return Outpass(
        id=uuid.uuid4(),
        outpass_number="OP-20250315-0001",
        student_id=uuid.uuid4(),
        purpose="Market",
        destination="City",
        from_date=DAY + timedelta(hours=start_h),
        to_date=DAY + timedelta(hours=end_h),
        status=status,
    )


def test_disjoint_intervals():
    assert not intervals_overlap(DAY, DAY + timedelta(hours=2), DAY + timedelta(hours=3), DAY + timedelta(hours=4))


def test_touching_endpoints_overlap():
    # New pass starts the instant the old one ends
    assert intervals_overlap(DAY + timedelta(hours=2), DAY + timedelta(hours=4), DAY, DAY + timedelta(hours=2))
    # New pass ends the instant the old one starts
    assert intervals_overlap(DAY, DAY + timedelta(hours=2), DAY + timedelta(hours=2), DAY + timedelta(hours=4))


def test_containment_overlaps():
    assert intervals_overlap(DAY + timedelta(hours=1), DAY + timedelta(hours=2), DAY, DAY + timedelta(hours=5))


def test_find_overlap_returns_conflict():
    a, b = existing(0, 2), existing(10, 12, OutpassStatus.Pending)

    assert find_overlap([a, b], DAY + timedelta(hours=11), DAY + timedelta(hours=13)) is b
    assert find_overlap([a, b], DAY + timedelta(hours=3), DAY + timedelta(hours=9)) is None


def test_non_live_outpasses_never_conflict():
    passes = [
        existing(0, 5, OutpassStatus.Rejected),
        existing(0, 5, OutpassStatus.Cancelled),
        existing(0, 5, OutpassStatus.CheckedIn),
        existing(0, 5, OutpassStatus.Overdue),
    ]
    assert find_overlap(passes, DAY + timedelta(hours=1), DAY + timedelta(hours=2)) is None


def test_checked_out_pass_conflicts():
    out = existing(0, 5, OutpassStatus.CheckedOut)
    assert find_overlap([out], DAY + timedelta(hours=4), DAY + timedelta(hours=6)) is out
