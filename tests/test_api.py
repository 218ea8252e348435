# tests/test_api.py

"""
API Endpoint Tests - Tests for all FastAPI endpoints
"""

from decimal import Decimal

import pytest
from fastapi import status

from fakes import CRON_SECRET, JUNE_FRIDAYS, actor_headers
from hrm_kpi.config import settings
from hrm_kpi.models.enumerations import PeriodStatus
from hrm_kpi.services.period_lock import week_lock_key

WEEKS = "/api/v1/hrm/weeks"
MONTHS = "/api/v1/hrm/months"
FUNDS = "/api/v1/hrm/funds"
CRON = "/api/v1/hrm/cron"


def assert_error(response, status_code, error_code):
    assert response.status_code == status_code
    data = response.json()
    assert data["error_code"] == error_code
    assert "message" in data
    assert "timestamp" in data


@pytest.fixture
def marked_week(store):
    """Week 2025-06-06: M1 → {S1, S2}, only S1 marked (80)."""
    week = store.add_week("2025-06-06")
    store.assign("M1", "S1", "S2")
    store.submit(week, "S1", "M1", Decimal("80"))
    return week


# ROOT / HEALTH


class TestRootEndpoint:

    def test_root_endpoint(self, client):
        response = client.get("/")
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["service"] == settings.APP_NAME
        assert data["version"] == settings.APP_VERSION
        assert data["docs"] == {"swagger": "/docs", "redoc": "/redoc"}
        assert data["status"] == "running"


class TestHealthEndpoint:

    def test_healthy(self, client, monkeypatch):
        monkeypatch.setattr("hrm_kpi.routers.health.check_snowflake", lambda: "healthy")
        monkeypatch.setattr("hrm_kpi.routers.health.check_redis", lambda: "healthy")

        response = client.get("/health")
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert set(data["dependencies"]) == {"snowflake", "redis"}

    def test_degraded_without_redis(self, client, monkeypatch):
        monkeypatch.setattr("hrm_kpi.routers.health.check_snowflake", lambda: "healthy")
        monkeypatch.setattr("hrm_kpi.routers.health.check_redis", lambda: "degraded: refused")

        response = client.get("/health")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "degraded"

    def test_503_without_snowflake(self, client, monkeypatch):
        monkeypatch.setattr(
            "hrm_kpi.routers.health.check_snowflake", lambda: "unhealthy: connection failed"
        )
        monkeypatch.setattr("hrm_kpi.routers.health.check_redis", lambda: "healthy")

        response = client.get("/health")
        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["status"] == "unhealthy"


# CALLER IDENTITY


class TestCallerIdentity:

    def test_missing_identity(self, client, marked_week):
        assert_error(client.get(f"{WEEKS}/2025-06-06"), 401, "UNAUTHENTICATED")

    def test_unknown_role(self, client, marked_week):
        response = client.get(f"{WEEKS}/2025-06-06", headers=actor_headers("x", "MANAGER"))
        assert_error(response, 422, "VALIDATION_ERROR")

    def test_system_role_needs_cron_secret(self, client, marked_week):
        response = client.get(f"{WEEKS}/2025-06-06", headers=actor_headers("x", "SYSTEM"))
        assert_error(response, 403, "FORBIDDEN")

    def test_role_header_is_case_insensitive(self, client, marked_week):
        response = client.get(f"{WEEKS}/2025-06-06", headers=actor_headers("sa-1", "super_admin"))
        assert response.status_code == status.HTTP_200_OK

    def test_cron_secret_acts_as_system(self, client, marked_week, cron_headers):
        response = client.post(f"{WEEKS}/2025-06-06/compute", headers=cron_headers)
        assert response.status_code == status.HTTP_200_OK

    def test_wrong_cron_secret(self, client, marked_week):
        response = client.post(f"{WEEKS}/2025-06-06/compute", headers={"X-CRON-SECRET": "nope"})
        assert_error(response, 403, "FORBIDDEN")


# WEEKS


class TestWeekEndpoints:

    def test_ensure_week(self, client, sa_headers):
        response = client.post(f"{WEEKS}/2025-06-13/ensure", headers=sa_headers)
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["week_key"] == "2025-06-13"
        assert data["status"] == "OPEN"

    def test_ensure_rejects_non_friday(self, client, sa_headers):
        response = client.post(f"{WEEKS}/2025-06-12/ensure", headers=sa_headers)
        assert_error(response, 422, "VALIDATION_ERROR")

    def test_ensure_requires_operator(self, client):
        response = client.post(f"{WEEKS}/2025-06-13/ensure", headers=actor_headers("M1", "ADMIN"))
        assert_error(response, 403, "FORBIDDEN")

    def test_compute_and_detail(self, client, sa_headers, marked_week):
        response = client.post(f"{WEEKS}/2025-06-06/compute", headers=sa_headers)
        assert response.status_code == status.HTTP_200_OK
        result = response.json()
        assert result["subjects_computed"] == 2
        assert result["notifications_queued"] == 1

        response = client.get(f"{WEEKS}/2025-06-06", headers=actor_headers("M1", "ADMIN"))
        assert response.status_code == status.HTTP_200_OK
        detail = response.json()
        assert detail["status"] == "OPEN"
        assert detail["week_label"] == "Week-1"
        scores = {r["subject_user_id"]: r["weekly_avg_score"] for r in detail["weekly_results"]}
        assert scores == {"S1": 80.0, "S2": 0.0}
        [compliance] = detail["compliance"]
        assert compliance["missed_count"] == 1
        assert compliance["status"] == "MISSED"

    def test_employee_cannot_read_week(self, client, marked_week):
        response = client.get(f"{WEEKS}/2025-06-06", headers=actor_headers("S1", "EMPLOYEE"))
        assert_error(response, 403, "FORBIDDEN")

    def test_compute_unknown_week(self, client, sa_headers):
        assert_error(client.post(f"{WEEKS}/2025-06-20/compute", headers=sa_headers), 404, "WEEK_NOT_FOUND")

    def test_compute_locked_week(self, client, sa_headers, marked_week, store):
        store.weeks["2025-06-06"].status = PeriodStatus.LOCKED
        response = client.post(f"{WEEKS}/2025-06-06/compute", headers=sa_headers)
        assert_error(response, 409, "WEEK_LOCKED")

        response = client.post(f"{WEEKS}/2025-06-06/compute", headers=sa_headers, json={"force": True})
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["forced"] is True

    def test_compute_busy(self, client, sa_headers, marked_week, period_locks):
        with period_locks.hold(week_lock_key("2025-06-06")):
            response = client.post(f"{WEEKS}/2025-06-06/compute", headers=sa_headers)
        assert_error(response, 409, "PERIOD_BUSY")

    def test_lock_and_unlock(self, client, sa_headers, cron_headers, marked_week):
        response = client.post(f"{WEEKS}/2025-06-06/lock", headers=cron_headers)
        assert response.json()["status"] == "LOCKED"

        assert_error(client.post(f"{WEEKS}/2025-06-06/lock", headers=cron_headers), 409, "ALREADY_LOCKED")
        assert_error(client.post(f"{WEEKS}/2025-06-06/unlock", headers=cron_headers), 403, "FORBIDDEN")

        response = client.post(f"{WEEKS}/2025-06-06/unlock", headers=sa_headers)
        assert response.json()["status"] == "OPEN"

    def test_malformed_json(self, client, sa_headers, marked_week):
        response = client.post(
            f"{WEEKS}/2025-06-06/compute",
            headers={**sa_headers, "Content-Type": "application/json"},
            content="{not json",
        )
        assert_error(response, 400, "INVALID_REQUEST")


# MONTHS


class TestMonthEndpoints:

    def test_compute_without_weekly_data(self, client, sa_headers):
        response = client.post(f"{MONTHS}/2025-06/compute", headers=sa_headers)
        assert_error(response, 412, "WEEKLY_DATA_MISSING")

    def test_malformed_month_key(self, client, sa_headers):
        assert_error(client.post(f"{MONTHS}/2025-13/compute", headers=sa_headers), 422, "VALIDATION_ERROR")

    def test_year_zero_month_key(self, client, sa_headers):
        assert_error(client.post(f"{MONTHS}/0000-06/compute", headers=sa_headers), 422, "VALIDATION_ERROR")

    def test_compute_and_list(self, client, sa_headers, seed_month_scores):
        seed_month_scores(JUNE_FRIDAYS, {"S1": [80, 85, 90, 75], "S2": [60, 50]})

        response = client.post(f"{MONTHS}/2025-06/compute", headers=sa_headers, json={"lock": True})
        assert response.status_code == status.HTTP_200_OK
        result = response.json()
        assert result["computed_subjects_count"] == 2
        assert result["locked"] is True

        response = client.get(f"{MONTHS}/2025-06/results", headers=actor_headers("M1", "ADMIN"))
        rows = {r["subject_user_id"]: r for r in response.json()}
        assert rows["S1"]["monthly_score"] == 82.5
        assert rows["S1"]["tier"] == "APPRECIATION"
        assert rows["S1"]["gift_type"] == "APPRECIATION"
        assert rows["S2"]["gift_type"] is None
        assert rows["S2"]["tier"] == "FINE"
        assert rows["S2"]["final_fine"] == 600.0

        response = client.get(f"{MONTHS}/2025-06/results", headers=actor_headers("S1", "EMPLOYEE"))
        assert [r["subject_user_id"] for r in response.json()] == ["S1"]

    def test_compute_locked_month(self, client, sa_headers, seed_month_scores, store):
        seed_month_scores(JUNE_FRIDAYS, {"S1": [80]})
        store.add_month("2025-06", PeriodStatus.LOCKED)
        assert_error(client.post(f"{MONTHS}/2025-06/compute", headers=sa_headers), 409, "MONTH_LOCKED")

    def test_results_for_unknown_month(self, client, sa_headers):
        assert_error(client.get(f"{MONTHS}/2025-01/results", headers=sa_headers), 404, "MONTH_NOT_FOUND")

    def test_lock_twice(self, client, sa_headers, store):
        store.add_month("2025-06")
        assert client.post(f"{MONTHS}/2025-06/lock", headers=sa_headers).json()["status"] == "LOCKED"
        assert_error(client.post(f"{MONTHS}/2025-06/lock", headers=sa_headers), 409, "ALREADY_LOCKED")

    def test_admin_cannot_lock(self, client, store):
        store.add_month("2025-06")
        response = client.post(f"{MONTHS}/2025-06/lock", headers=actor_headers("M1", "ADMIN"))
        assert_error(response, 403, "FORBIDDEN")


# FUNDS


class TestFundEndpoints:

    @pytest.fixture
    def fined_result_id(self, client, sa_headers, seed_month_scores, repos):
        seed_month_scores(JUNE_FRIDAYS, {"S2": [55]})
        client.post(f"{MONTHS}/2025-06/compute", headers=sa_headers)
        month = repos.months.get_by_key("2025-06")
        return repos.monthly_results.get(month.id, "S2").id

    def test_collect_and_summary(self, client, sa_headers, fined_result_id):
        body = {"monthly_result_id": fined_result_id, "entry_type": "FINE", "status": "COLLECTED"}
        response = client.put(f"{FUNDS}/entries", headers=sa_headers, json=body)
        assert response.status_code == status.HTTP_200_OK
        entry = response.json()
        assert entry["status"] == "COLLECTED"
        assert entry["actual_amount"] == 600.0
        assert entry["marked_by_admin_id"] == "sa-1"

        summary = client.get(f"{FUNDS}/summary", headers=sa_headers).json()
        assert summary["fine_collected"] == 600.0
        assert summary["current_balance"] == 600.0

        entries = client.get(f"{FUNDS}/entries", headers=sa_headers, params={"month_key": "2025-06"}).json()
        assert len(entries) == 1

    def test_invalid_transition(self, client, sa_headers, fined_result_id):
        body = {"monthly_result_id": fined_result_id, "entry_type": "FINE", "status": "PAID"}
        response = client.put(f"{FUNDS}/entries", headers=sa_headers, json=body)
        assert_error(response, 409, "INVALID_STATUS_TRANSITION")

    def test_unknown_result(self, client, sa_headers):
        body = {"monthly_result_id": "nope", "entry_type": "FINE", "status": "COLLECTED"}
        response = client.put(f"{FUNDS}/entries", headers=sa_headers, json=body)
        assert_error(response, 404, "MONTHLY_RESULT_NOT_FOUND")

    def test_bad_entry_type(self, client, sa_headers):
        body = {"monthly_result_id": "r1", "entry_type": "GIFT", "status": "DUE"}
        response = client.put(f"{FUNDS}/entries", headers=sa_headers, json=body)
        assert_error(response, 422, "VALIDATION_ERROR")
        assert response.json()["details"]["field"] == "entry_type"

    def test_bad_month_filter(self, client, sa_headers):
        response = client.get(f"{FUNDS}/summary", headers=sa_headers, params={"month_key": "June"})
        assert_error(response, 422, "VALIDATION_ERROR")

    def test_super_admin_only(self, client):
        response = client.get(f"{FUNDS}/summary", headers=actor_headers("M1", "ADMIN"))
        assert_error(response, 403, "FORBIDDEN")


# CRON


class TestCronEndpoints:

    def test_missing_secret(self, client):
        assert_error(client.post(f"{CRON}/ensure-week"), 401, "UNAUTHENTICATED")

    def test_wrong_secret(self, client):
        response = client.post(f"{CRON}/ensure-week", headers={"X-CRON-SECRET": "wrong"})
        assert_error(response, 403, "FORBIDDEN")

    def test_secret_not_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "HRM_CRON_SECRET", None)
        response = client.post(f"{CRON}/ensure-week", headers={"X-CRON-SECRET": CRON_SECRET})
        assert_error(response, 500, "SERVER_MISCONFIGURED")

    def test_actor_headers_are_not_enough(self, client, sa_headers):
        assert_error(client.post(f"{CRON}/ensure-week", headers=sa_headers), 401, "UNAUTHENTICATED")

    def test_ensure_week(self, client, cron_headers):
        response = client.post(f"{CRON}/ensure-week", headers=cron_headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["action"] == "created"

        response = client.post(f"{CRON}/ensure-week", headers=cron_headers)
        assert response.json()["action"] == "exists"

    def test_dispatch_notifications(self, client, cron_headers, marked_week, notifier):
        client.post(f"{WEEKS}/2025-06-06/compute", headers=cron_headers)

        response = client.post(f"{CRON}/dispatch-notifications", headers=cron_headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"sent": 1, "failed": 0, "remaining": 0}
        notifier.send.assert_called_once()
