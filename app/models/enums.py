from enum import Enum

class OutpassStatus(str, Enum):
    Pending = "pending"
    Approved = "approved"
    Rejected = "rejected"
    CheckedOut = "checked_out"
    CheckedIn = "checked_in"
    Overdue = "overdue"
    Cancelled = "cancelled"


class OutpassType(str, Enum):
    Local = "local"
    Home = "home"
    Emergency = "emergency"
    Medical = "medical"
    Other = "other"


class NotificationKind(str, Enum):
    Created = "outpass_created"
    Approved = "outpass_approved"
    Rejected = "outpass_rejected"
    Cancelled = "outpass_cancelled"
    CheckedOut = "outpass_checked_out"
    CheckedIn = "outpass_checked_in"
    Overdue = "outpass_overdue"


# Statuses that block a new overlapping request
LIVE_STATUSES = (
    OutpassStatus.Pending,
    OutpassStatus.Approved,
    OutpassStatus.CheckedOut,
)

# Statuses a gate scan may still act on
SCANNABLE_STATUSES = (
    OutpassStatus.Approved,
    OutpassStatus.CheckedOut,
)
