"""
scoring/ — HRM KPI Compute & Tiering

Pure functions only; no storage or network access.

Modules:
    utils.py               - Decimal utilities (rounding, clamping)
    period_calendar.py     - Week/month keys, Fridays, organization timezone
    submission_scoring.py  - Criterion rubric → submission score (for the submission writer)
    aggregation.py         - Weekly aggregation + marker compliance
    tiering.py             - Monthly tier classification and streak policy
    fund_ledger.py         - Fine/bonus ledger transitions and totals
"""
