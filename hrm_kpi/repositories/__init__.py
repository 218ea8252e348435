"""
Repositories Package - HRM KPI Engine
hrm_kpi/repositories/__init__.py

Data access layer for Snowflake database operations.
"""

from hrm_kpi.repositories.base import BaseRepository
from hrm_kpi.repositories.assignment_repository import AssignmentRepository
from hrm_kpi.repositories.fund_log_repository import FundLogRepository
from hrm_kpi.repositories.notification_repository import NotificationOutboxRepository
from hrm_kpi.repositories.period_repository import MonthRepository, WeekRepository
from hrm_kpi.repositories.result_repository import (
    AdminComplianceRepository,
    MonthlyResultRepository,
    SubjectMonthStateRepository,
    WeeklyResultRepository,
)
from hrm_kpi.repositories.submission_repository import SubmissionRepository

__all__ = [
    "BaseRepository",
    "AssignmentRepository",
    "FundLogRepository",
    "NotificationOutboxRepository",
    "MonthRepository",
    "WeekRepository",
    "AdminComplianceRepository",
    "MonthlyResultRepository",
    "SubjectMonthStateRepository",
    "WeeklyResultRepository",
    "SubmissionRepository",
]
