"""
services/notification_templates.py — Notification intents per event type

Builders only; they return NotificationIntent objects for the caller to
append to the outbox inside its own transaction.
"""

from decimal import Decimal

from hrm_kpi.models.enumerations import NotificationType, Tier
from hrm_kpi.models.notification import NotificationIntent

ADMIN_MARKING_LINK = "/dashboard/hrm/admin/marking"
EMPLOYEE_RESULT_LINK = "/dashboard/hrm/employee"

TIER_BADGES = {
    Tier.BONUS: "🎁",
    Tier.APPRECIATION: "⭐",
    Tier.IMPROVEMENT: "📈",
    Tier.FINE: "⚠️",
}


def pending_marking(marker_admin_id: str, week_key: str, pending_count: int) -> NotificationIntent:
    return NotificationIntent(
        user_id=marker_admin_id,
        type=NotificationType.ADMIN_PENDING_MARKING,
        title="Pending KPI Markings",
        message=(
            f"You have {pending_count} pending marking(s) for week {week_key}. "
            "Please submit before Friday end."
        ),
        link=ADMIN_MARKING_LINK,
    )


def missed_marking(marker_admin_id: str, week_key: str, missed_count: int) -> NotificationIntent:
    return NotificationIntent(
        user_id=marker_admin_id,
        type=NotificationType.ADMIN_MISSED_MARKING,
        title="Missed KPI Markings",
        message=(
            f"You missed {missed_count} marking(s) for week {week_key}. "
            "This may affect your compliance record."
        ),
        link=ADMIN_MARKING_LINK,
    )


def month_result_ready(
    subject_user_id: str, month_key: str, tier: Tier, monthly_score: Decimal
) -> NotificationIntent:
    return NotificationIntent(
        user_id=subject_user_id,
        type=NotificationType.MONTH_RESULT_READY,
        title="Monthly KPI Results Ready",
        message=(
            f"Your {month_key} results are ready! {TIER_BADGES[tier]} "
            f"Tier: {tier.value} | Score: {monthly_score:.2f}"
        ),
        link=EMPLOYEE_RESULT_LINK,
    )
