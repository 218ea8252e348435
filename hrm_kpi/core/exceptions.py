"""
Custom Exceptions - HRM KPI Engine
hrm_kpi/core/exceptions.py

Repository exceptions (storage layer) and the engine error taxonomy:
NotFound, LockedState, PreconditionFailed, InvalidTransition, Validation, Authorization.
"""

from typing import Any, Dict, Optional


class RepositoryException(Exception):
    """Base exception for repository operations."""

    pass


class EntityNotFoundException(RepositoryException):
    """Entity not found in database."""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with ID {entity_id} not found")


class DuplicateEntityException(RepositoryException):
    """Duplicate entity violation."""

    def __init__(self, message: str = "Entity already exists"):
        self.message = message
        super().__init__(message)


class DatabaseConnectionException(RepositoryException):
    """Database connection failure."""

    def __init__(self, message: str = "Database connection failed"):
        self.message = message
        super().__init__(message)


class ForeignKeyViolationException(RepositoryException):
    """Foreign key constraint violation."""

    def __init__(self, message: str = "Foreign key constraint violation"):
        self.message = message
        super().__init__(message)


# =============================================================================
# ENGINE ERRORS
# =============================================================================


class KpiEngineError(Exception):
    """Base class for engine errors surfaced to callers."""

    error_code = "ENGINE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(KpiEngineError):
    error_code = "NOT_FOUND"


class WeekNotFound(NotFoundError):
    error_code = "WEEK_NOT_FOUND"

    def __init__(self, week_key: str):
        self.week_key = week_key
        super().__init__(f"Week {week_key} not found", {"week_key": week_key})


class MonthNotFound(NotFoundError):
    error_code = "MONTH_NOT_FOUND"

    def __init__(self, month_key: str):
        self.month_key = month_key
        super().__init__(f"Month {month_key} not found", {"month_key": month_key})


class MonthlyResultNotFound(NotFoundError):
    error_code = "MONTHLY_RESULT_NOT_FOUND"

    def __init__(self, monthly_result_id: str):
        self.monthly_result_id = monthly_result_id
        super().__init__(
            f"Monthly result {monthly_result_id} not found",
            {"monthly_result_id": monthly_result_id},
        )


class LockedStateError(KpiEngineError):
    """Write attempted against a locked period. Batch jobs report this as skipped."""

    error_code = "LOCKED"


class WeekLocked(LockedStateError):
    error_code = "WEEK_LOCKED"

    def __init__(self, week_key: str):
        self.week_key = week_key
        super().__init__(
            f"Week {week_key} is locked. Use force to recompute.", {"week_key": week_key}
        )


class MonthLocked(LockedStateError):
    error_code = "MONTH_LOCKED"

    def __init__(self, month_key: str):
        self.month_key = month_key
        super().__init__(
            f"Month {month_key} is locked. Unlock it before recomputing.",
            {"month_key": month_key},
        )


class AlreadyLocked(LockedStateError):
    error_code = "ALREADY_LOCKED"

    def __init__(self, period: str, key: str):
        self.period = period
        self.key = key
        super().__init__(f"{period} {key} is already locked", {"period": period, "key": key})


class PreconditionFailedError(KpiEngineError):
    error_code = "PRECONDITION_FAILED"


class NoFridaysInMonth(PreconditionFailedError):
    error_code = "NO_FRIDAYS_IN_MONTH"

    def __init__(self, month_key: str):
        super().__init__(f"No Fridays found in month {month_key}", {"month_key": month_key})


class WeeklyDataMissing(PreconditionFailedError):
    error_code = "WEEKLY_DATA_MISSING"

    def __init__(self, month_key: str, expected_weeks: list):
        super().__init__(
            f"No weekly data found for {month_key}. Compute weeks first.",
            {"month_key": month_key, "expected_weeks": list(expected_weeks)},
        )


class InvalidTransitionError(KpiEngineError):
    error_code = "INVALID_TRANSITION"


class InvalidStatusTransition(InvalidTransitionError):
    error_code = "INVALID_STATUS_TRANSITION"

    def __init__(self, entry_type: str, from_status: Optional[str], to_status: str):
        super().__init__(
            f"Invalid status transition {from_status or 'NEW'} -> {to_status} for {entry_type}",
            {"entry_type": entry_type, "from_status": from_status, "to_status": to_status},
        )


class KpiValidationError(KpiEngineError):
    error_code = "VALIDATION_ERROR"


class MissingExpectedAmount(KpiValidationError):
    error_code = "MISSING_EXPECTED_AMOUNT"

    def __init__(self, monthly_result_id: str):
        super().__init__(
            "No fine amount available for this monthly result",
            {"monthly_result_id": monthly_result_id},
        )


class InvalidAmount(KpiValidationError):
    error_code = "INVALID_AMOUNT"


class DuplicateSubmission(KpiValidationError):
    error_code = "DUPLICATE_SUBMISSION"


class AuthorizationError(KpiEngineError):
    error_code = "FORBIDDEN"


class PeriodBusy(LockedStateError):
    """Another compute for the same period holds the advisory lock."""

    error_code = "PERIOD_BUSY"

    def __init__(self, lock_key: str):
        self.lock_key = lock_key
        super().__init__(
            f"Another computation for {lock_key} is in progress", {"lock_key": lock_key}
        )


class AuthenticationError(KpiEngineError):
    """Caller identity missing or cron secret rejected."""

    error_code = "UNAUTHENTICATED"


class CronSecretNotConfigured(KpiEngineError):
    error_code = "SERVER_MISCONFIGURED"

    def __init__(self):
        super().__init__("Server configuration error: HRM_CRON_SECRET is not set")
