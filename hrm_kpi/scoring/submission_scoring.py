"""
scoring/submission_scoring.py — Per-criterion marks to a submission total

Formula (per criterion present in the submission):
    normalized = score_raw / scale_max × 100
    weighted   = normalized × weight_percent / 100
    total      = Σ weighted, rounded half-up to 2 dp   (0-100 when weights sum to 100)

Missing criteria contribute 0 to the total; validate_submitted_scores reports them.

The engine never writes submissions. These helpers are the scoring contract for
the external writer that stores Submission.total_score; weekly compute only
reads that total.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List

from hrm_kpi.models.evaluation import CriterionScore
from hrm_kpi.scoring.utils import clamp, round2


@dataclass(frozen=True)
class CriterionWeight:
    """One criterion of a subject's active criteria set."""
    criteria_id: str
    scale_max: Decimal
    weight_percent: Decimal


@dataclass
class SubmissionValidation:
    valid: bool
    errors: List[str]


def compute_submission_total(
    criteria: Iterable[CriterionWeight],
    scores: Iterable[CriterionScore],
) -> Decimal:
    by_id: Dict[str, Decimal] = {s.criteria_id: Decimal(str(s.score_raw)) for s in scores}
    total = Decimal("0")
    for item in criteria:
        raw = by_id.get(item.criteria_id)
        if raw is None or item.scale_max <= 0:
            continue
        normalized = raw / item.scale_max * Decimal("100")
        total += normalized * item.weight_percent / Decimal("100")
    return clamp(round2(total))


def validate_submitted_scores(
    criteria: Iterable[CriterionWeight],
    scores: Iterable[CriterionScore],
) -> SubmissionValidation:
    """Check every criterion is scored, none is unknown, and each is within its scale."""
    criteria = list(criteria)
    scores = list(scores)
    errors: List[str] = []

    required = {c.criteria_id: c for c in criteria}
    submitted_ids = {s.criteria_id for s in scores}

    for criteria_id in required:
        if criteria_id not in submitted_ids:
            errors.append(f"Missing score for criterion {criteria_id}")

    for score in scores:
        item = required.get(score.criteria_id)
        if item is None:
            errors.append(f"Unknown criterion {score.criteria_id}")
            continue
        if score.score_raw < 0 or score.score_raw > item.scale_max:
            errors.append(f"Score for {score.criteria_id} must be between 0 and {item.scale_max}")

    return SubmissionValidation(valid=not errors, errors=errors)
