# tests/fakes.py

"""
In-memory stand-ins for the Snowflake repositories.

Every fake mirrors the public method signatures of its repository (including
the optional ``cursor`` argument) and shares one InMemoryStore, so a
``transaction()`` opened on any fake rolls back writes made through all of them.
"""

import copy
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Dict, Iterator, List, Optional, Tuple

from pydantic import TypeAdapter

from hrm_kpi.models.enumerations import FundEntryType, NotificationStatus, PeriodStatus
from hrm_kpi.models.evaluation import Assignment, CriterionScore, Submission
from hrm_kpi.models.fund import FundFilters, FundLogEntry
from hrm_kpi.models.notification import NotificationIntent
from hrm_kpi.models.period import Month, Week
from hrm_kpi.models.results import AdminCompliance, MonthlyResult, SubjectMonthState, WeeklyResult
from hrm_kpi.scoring.period_calendar import month_date_range


class InMemoryStore:
    """All tables as plain dicts/lists."""

    _TABLES = (
        "weeks", "months", "assignments", "submissions", "weekly_results",
        "compliance", "monthly_results", "states", "fund_logs", "outbox",
    )

    def __init__(self):
        self.weeks: Dict[str, Week] = {}
        self.months: Dict[str, Month] = {}
        self.assignments: List[Assignment] = []
        self.submissions: List[Submission] = []
        self.weekly_results: Dict[Tuple[str, str], WeeklyResult] = {}
        self.compliance: Dict[Tuple[str, str], AdminCompliance] = {}
        self.monthly_results: Dict[Tuple[str, str], MonthlyResult] = {}
        self.states: Dict[str, SubjectMonthState] = {}
        self.fund_logs: Dict[Tuple[str, FundEntryType], FundLogEntry] = {}
        self.outbox: List[NotificationIntent] = []
        self.transactions = 0
        self.rollbacks = 0

    @contextmanager
    def transaction(self):
        snapshot = {name: copy.deepcopy(getattr(self, name)) for name in self._TABLES}
        self.transactions += 1
        try:
            yield object()
        except Exception:
            for name, value in snapshot.items():
                setattr(self, name, value)
            self.rollbacks += 1
            raise

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------

    def add_week(self, week_key: str, status: PeriodStatus = PeriodStatus.OPEN) -> Week:
        week = Week(week_key=week_key, friday_date=date.fromisoformat(week_key), status=status)
        self.weeks[week_key] = week
        return week

    def add_month(self, month_key: str, status: PeriodStatus = PeriodStatus.OPEN) -> Month:
        rng = month_date_range(month_key)
        month = Month(month_key=month_key, start_date=rng.start, end_date=rng.end, status=status)
        self.months[month_key] = month
        return month

    def assign(self, marker_admin_id: str, *subject_ids: str) -> None:
        for subject_id in subject_ids:
            self.assignments.append(
                Assignment(marker_admin_id=marker_admin_id, subject_user_id=subject_id)
            )

    def submit(self, week: Week, subject_user_id: str, marker_admin_id: str, total_score) -> Submission:
        submission = Submission(
            week_id=week.id,
            subject_user_id=subject_user_id,
            marker_admin_id=marker_admin_id,
            per_criterion_scores=[CriterionScore(criteria_id="c1", score_raw=total_score)],
            total_score=total_score,
        )
        self.submissions.append(submission)
        return submission

    def add_weekly_result(self, week: Week, subject_user_id: str, score, expected: int = 1, submitted: int = 1):
        row = WeeklyResult(
            week_id=week.id,
            subject_user_id=subject_user_id,
            weekly_avg_score=score,
            expected_markers_count=expected,
            submitted_markers_count=submitted,
            is_complete=submitted >= expected,
        )
        self.weekly_results[row.natural_key] = row
        return row


class _FakeRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    def transaction(self):
        return self.store.transaction()


class FakeWeekRepository(_FakeRepository):
    def get_by_key(self, week_key: str, cursor=None) -> Optional[Week]:
        week = self.store.weeks.get(week_key)
        return week.model_copy() if week else None

    def get_by_id(self, week_id: str) -> Optional[Week]:
        for week in self.store.weeks.values():
            if week.id == week_id:
                return week.model_copy()
        return None

    def list_by_keys(self, week_keys: List[str]) -> List[Week]:
        found = [w.model_copy() for k, w in self.store.weeks.items() if k in set(week_keys)]
        return sorted(found, key=lambda w: w.friday_date)

    def ensure(self, week_key: str, friday_date: date) -> Tuple[Week, bool]:
        if week_key in self.store.weeks:
            return self.store.weeks[week_key].model_copy(), False
        week = Week(week_key=week_key, friday_date=friday_date)
        self.store.weeks[week_key] = week
        return week.model_copy(), True

    def set_status(self, week_key: str, status: PeriodStatus, cursor=None) -> Optional[Week]:
        week = self.store.weeks.get(week_key)
        if week is None:
            return None
        week.status = status
        return week.model_copy()


class FakeMonthRepository(_FakeRepository):
    def get_by_key(self, month_key: str, cursor=None) -> Optional[Month]:
        month = self.store.months.get(month_key)
        return month.model_copy() if month else None

    def get_by_id(self, month_id: str) -> Optional[Month]:
        for month in self.store.months.values():
            if month.id == month_id:
                return month.model_copy()
        return None

    def ensure(self, month_key: str, start_date: date, end_date: date) -> Tuple[Month, bool]:
        if month_key in self.store.months:
            return self.store.months[month_key].model_copy(), False
        month = Month(month_key=month_key, start_date=start_date, end_date=end_date)
        self.store.months[month_key] = month
        return month.model_copy(), True

    def set_status(self, month_key: str, status: PeriodStatus, cursor=None) -> Optional[Month]:
        month = self.store.months.get(month_key)
        if month is None:
            return None
        month.status = status
        return month.model_copy()


class FakeAssignmentRepository(_FakeRepository):
    def list_active(self, marker_admin_id: Optional[str] = None) -> List[Assignment]:
        rows = [
            a for a in self.store.assignments
            if a.is_active and (marker_admin_id is None or a.marker_admin_id == marker_admin_id)
        ]
        return sorted(rows, key=lambda a: (a.marker_admin_id, a.subject_user_id))


class FakeSubmissionRepository(_FakeRepository):
    def list_for_week(self, week_id: str) -> List[Submission]:
        return [s for s in self.store.submissions if s.week_id == week_id]


class FakeWeeklyResultRepository(_FakeRepository):
    def replace_for_week(self, week_id: str, rows: List[WeeklyResult], cursor=None) -> int:
        for key in [k for k in self.store.weekly_results if k[0] == week_id]:
            del self.store.weekly_results[key]
        for row in rows:
            self.store.weekly_results[row.natural_key] = row.model_copy()
        return len(rows)

    def list_for_week(self, week_id: str) -> List[WeeklyResult]:
        rows = [r for k, r in self.store.weekly_results.items() if k[0] == week_id]
        return sorted(rows, key=lambda r: r.subject_user_id)

    def list_for_weeks(self, week_ids: List[str]) -> List[WeeklyResult]:
        ids = set(week_ids)
        rows = [r for k, r in self.store.weekly_results.items() if k[0] in ids]
        return sorted(rows, key=lambda r: (r.subject_user_id, r.week_id))


class FakeAdminComplianceRepository(_FakeRepository):
    def replace_for_week(self, week_id: str, rows: List[AdminCompliance], cursor=None) -> int:
        for key in [k for k in self.store.compliance if k[0] == week_id]:
            del self.store.compliance[key]
        for row in rows:
            self.store.compliance[row.natural_key] = row.model_copy()
        return len(rows)

    def list_for_week(self, week_id: str) -> List[AdminCompliance]:
        rows = [r for k, r in self.store.compliance.items() if k[0] == week_id]
        return sorted(rows, key=lambda r: r.admin_user_id)


class FakeMonthlyResultRepository(_FakeRepository):
    def get_by_id(self, result_id: str) -> Optional[MonthlyResult]:
        for row in self.store.monthly_results.values():
            if row.id == result_id:
                return row.model_copy()
        return None

    def get(self, month_id: str, subject_user_id: str, cursor=None) -> Optional[MonthlyResult]:
        row = self.store.monthly_results.get((month_id, subject_user_id))
        return row.model_copy() if row else None

    def latest_before(self, month_key: str, subject_user_id: str) -> Optional[Tuple[str, MonthlyResult]]:
        for key in sorted(self.store.months, reverse=True):
            if key >= month_key:
                continue
            row = self.get(self.store.months[key].id, subject_user_id)
            if row is not None:
                return key, row
        return None

    def list_for_month(self, month_id: str) -> List[MonthlyResult]:
        rows = [r.model_copy() for k, r in self.store.monthly_results.items() if k[0] == month_id]
        return sorted(rows, key=lambda r: r.subject_user_id)

    def upsert(self, result: MonthlyResult, cursor=None) -> MonthlyResult:
        existing = self.store.monthly_results.get(result.natural_key)
        stored = result.model_copy(update={"id": existing.id}) if existing else result.model_copy()
        self.store.monthly_results[result.natural_key] = stored
        return stored.model_copy()


class FakeSubjectMonthStateRepository(_FakeRepository):
    def get(self, subject_user_id: str) -> Optional[SubjectMonthState]:
        state = self.store.states.get(subject_user_id)
        return state.model_copy() if state else None

    def upsert(self, state: SubjectMonthState, cursor=None) -> SubjectMonthState:
        self.store.states[state.subject_user_id] = state.model_copy()
        return state


class FakeFundLogRepository(_FakeRepository):
    def get(self, monthly_result_id: str, entry_type: FundEntryType, cursor=None) -> Optional[FundLogEntry]:
        entry = self.store.fund_logs.get((monthly_result_id, entry_type))
        return entry.model_copy() if entry else None

    def upsert(self, entry: FundLogEntry, cursor=None) -> FundLogEntry:
        existing = self.store.fund_logs.get(entry.natural_key)
        stored = entry.model_copy(update={"id": existing.id}) if existing else entry.model_copy()
        self.store.fund_logs[entry.natural_key] = stored
        return stored.model_copy()

    def iter_entries(self, filters: Optional[FundFilters] = None) -> Iterator[FundLogEntry]:
        filters = filters or FundFilters()
        month_id = None
        if filters.month_key:
            month = self.store.months.get(filters.month_key)
            if month is None:
                return
            month_id = month.id
        for entry in self.store.fund_logs.values():
            if month_id and entry.month_id != month_id:
                continue
            if filters.entry_type and entry.entry_type != filters.entry_type:
                continue
            if filters.status and entry.status != filters.status:
                continue
            if filters.subject_user_id and entry.subject_user_id != filters.subject_user_id:
                continue
            yield entry.model_copy()


class FakeNotificationOutboxRepository(_FakeRepository):
    def enqueue_many(self, intents: List[NotificationIntent], cursor=None) -> int:
        self.store.outbox.extend(i.model_copy() for i in intents)
        return len(intents)

    def _pending(self, max_attempts: int) -> List[NotificationIntent]:
        return [
            i for i in self.store.outbox
            if i.status == NotificationStatus.PENDING and i.attempts < max_attempts
        ]

    def list_pending(self, limit: int, max_attempts: int) -> List[NotificationIntent]:
        rows = sorted(self._pending(max_attempts), key=lambda i: (i.created_at, i.id))
        return [i.model_copy() for i in rows[:limit]]

    def count_pending(self, max_attempts: int) -> int:
        return len(self._pending(max_attempts))

    def _find(self, intent_id: str) -> NotificationIntent:
        return next(i for i in self.store.outbox if i.id == intent_id)

    def mark_sent(self, intent_id: str, dispatched_at) -> None:
        intent = self._find(intent_id)
        intent.status = NotificationStatus.SENT
        intent.attempts += 1
        intent.last_error = None
        intent.dispatched_at = dispatched_at

    def mark_failed(self, intent_id: str, error: str, give_up: bool) -> None:
        intent = self._find(intent_id)
        intent.status = NotificationStatus.FAILED if give_up else NotificationStatus.PENDING
        intent.attempts += 1
        intent.last_error = error[:1000]


class FakeCache:
    """Dict-backed RedisCache with the same surface the services use."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.deleted: List[str] = []

    def get(self, key, model):
        raw = self.data.get(key)
        return model.model_validate_json(raw) if raw else None

    def get_list(self, key, model):
        raw = self.data.get(key)
        return TypeAdapter(List[model]).validate_json(raw) if raw else None

    def set(self, key, value, ttl_seconds):
        self.data[key] = value.model_dump_json()

    def set_list(self, key, values, ttl_seconds):
        self.data[key] = "[" + ",".join(v.model_dump_json() for v in values) + "]"

    def delete(self, key):
        self.deleted.append(key)
        self.data.pop(key, None)

    def delete_pattern(self, pattern):
        prefix = pattern.rstrip("*")
        for key in [k for k in self.data if k.startswith(prefix)]:
            self.delete(key)


# ----------------------------------------------------------------------
# Shared test constants
# ----------------------------------------------------------------------

CRON_SECRET = "test-cron-secret-0123456789"

JUNE_FRIDAYS = ["2025-06-06", "2025-06-13", "2025-06-20", "2025-06-27"]
MAY_FRIDAYS = ["2025-05-02", "2025-05-09", "2025-05-16", "2025-05-23", "2025-05-30"]

FIXED_NOW = datetime(2025, 7, 1, 3, 0, tzinfo=timezone.utc)


def actor_headers(actor_id: str, role: str) -> dict:
    return {"X-Actor-Id": actor_id, "X-Actor-Role": role}
