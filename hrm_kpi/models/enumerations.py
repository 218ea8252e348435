from enum import Enum

class PeriodStatus(str, Enum):
    OPEN = "OPEN"
    LOCKED = "LOCKED"

class Tier(str, Enum):
    BONUS = "BONUS"                # Top performers
    APPRECIATION = "APPRECIATION"  # Good standing
    IMPROVEMENT = "IMPROVEMENT"    # Below expectation, not penalized on first occurrence
    FINE = "FINE"                  # Penalized

class ActionType(str, Enum):
    BONUS = "BONUS"
    GIFT = "GIFT"
    APPRECIATION = "APPRECIATION"
    SHOW_CAUSE = "SHOW_CAUSE"
    FINE = "FINE"
    NONE = "NONE"

    @property
    def label(self) -> str:
        return _ACTION_LABELS[self]

_ACTION_LABELS = {
    ActionType.BONUS: "bonus eligible",
    ActionType.GIFT: "gift eligible",
    ActionType.APPRECIATION: "appreciation",
    ActionType.SHOW_CAUSE: "show cause notice",
    ActionType.FINE: "fine applied",
    ActionType.NONE: "no action",
}

class ComplianceStatus(str, Enum):
    OK = "OK"
    MISSED = "MISSED"

class FundEntryType(str, Enum):
    FINE = "FINE"
    BONUS = "BONUS"

class FundStatus(str, Enum):
    DUE = "DUE"
    COLLECTED = "COLLECTED"
    PAID = "PAID"

class NotificationType(str, Enum):
    ADMIN_PENDING_MARKING = "ADMIN_PENDING_MARKING"
    ADMIN_MISSED_MARKING = "ADMIN_MISSED_MARKING"
    MONTH_RESULT_READY = "MONTH_RESULT_READY"

class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"

class HrmRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    EMPLOYEE = "EMPLOYEE"
    SYSTEM = "SYSTEM"  # Scheduled jobs authenticated by the surrounding service
