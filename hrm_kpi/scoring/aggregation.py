"""
scoring/aggregation.py — Weekly and monthly roll-ups

Pure functions over already-loaded rows. Output ordering is sorted by id so
that recomputing from identical inputs yields identical row sequences.

Weekly, per subject in (submissions ∪ assignments):
    weekly_avg_score       = round2(mean(total_score))   (0 when no submissions)
    expected_markers_count = |active markers assigned|
    submitted_markers_count= |submissions|
    is_complete            = submitted >= expected

Weekly, per marker with ≥1 active assignment:
    missed_count = max(0, |assigned subjects| − |distinct subjects submitted|)

Monthly, per subject with ≥1 weekly result:
    monthly_score = round2(mean(weekly_avg_score))
"""

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Set, Tuple

from hrm_kpi.core.exceptions import DuplicateSubmission
from hrm_kpi.models.enumerations import ComplianceStatus
from hrm_kpi.models.evaluation import Assignment, Submission
from hrm_kpi.models.results import AdminCompliance, WeeklyResult
from hrm_kpi.scoring.utils import mean2


@dataclass
class WeekAggregate:
    weekly_results: List[WeeklyResult]
    compliance: List[AdminCompliance]

    @property
    def markers_with_misses(self) -> List[AdminCompliance]:
        return [c for c in self.compliance if c.missed_count > 0]


@dataclass(frozen=True)
class SubjectMonthScore:
    subject_user_id: str
    monthly_score: Decimal
    weeks_count_used: int


def index_submissions(submissions: Iterable[Submission]) -> Dict[str, List[Submission]]:
    """Group submissions by subject, rejecting duplicate (week, subject, marker) keys."""
    seen: Set[Tuple[str, str, str]] = set()
    by_subject: Dict[str, List[Submission]] = defaultdict(list)
    for sub in submissions:
        if sub.natural_key in seen:
            raise DuplicateSubmission(
                f"Duplicate submission for subject {sub.subject_user_id} by marker {sub.marker_admin_id}",
                {
                    "week_id": sub.week_id,
                    "subject_user_id": sub.subject_user_id,
                    "marker_admin_id": sub.marker_admin_id,
                },
            )
        seen.add(sub.natural_key)
        by_subject[sub.subject_user_id].append(sub)
    return by_subject


def index_assignments(
    assignments: Iterable[Assignment],
) -> Tuple[Dict[str, Set[str]], Dict[str, Set[str]]]:
    """(subject → marker set, marker → subject set) over active assignments."""
    markers_by_subject: Dict[str, Set[str]] = defaultdict(set)
    subjects_by_marker: Dict[str, Set[str]] = defaultdict(set)
    for a in assignments:
        if not a.is_active:
            continue
        markers_by_subject[a.subject_user_id].add(a.marker_admin_id)
        subjects_by_marker[a.marker_admin_id].add(a.subject_user_id)
    return markers_by_subject, subjects_by_marker


def aggregate_week(
    week_id: str,
    submissions: Iterable[Submission],
    assignments: Iterable[Assignment],
) -> WeekAggregate:
    submissions = list(submissions)
    subs_by_subject = index_submissions(submissions)
    markers_by_subject, subjects_by_marker = index_assignments(assignments)

    weekly_results = []
    for subject_id in sorted(set(subs_by_subject) | set(markers_by_subject)):
        subs = subs_by_subject.get(subject_id, [])
        expected = len(markers_by_subject.get(subject_id, ()))
        submitted = len(subs)
        weekly_results.append(
            WeeklyResult(
                week_id=week_id,
                subject_user_id=subject_id,
                weekly_avg_score=mean2(s.total_score for s in subs),
                expected_markers_count=expected,
                submitted_markers_count=submitted,
                is_complete=submitted >= expected,
            )
        )

    submitted_by_marker: Dict[str, Set[str]] = defaultdict(set)
    for sub in submissions:
        submitted_by_marker[sub.marker_admin_id].add(sub.subject_user_id)

    compliance = []
    for marker_id in sorted(subjects_by_marker):
        expected = len(subjects_by_marker[marker_id])
        submitted = len(submitted_by_marker.get(marker_id, ()))
        missed = max(0, expected - submitted)
        compliance.append(
            AdminCompliance(
                week_id=week_id,
                admin_user_id=marker_id,
                expected_count=expected,
                submitted_count=submitted,
                missed_count=missed,
                status=ComplianceStatus.OK if missed == 0 else ComplianceStatus.MISSED,
            )
        )

    return WeekAggregate(weekly_results=weekly_results, compliance=compliance)


def pending_markings(
    submissions: Iterable[Submission],
    assignments: Iterable[Assignment],
) -> Dict[str, int]:
    """Marker → number of assigned subjects still without a submission."""
    _, subjects_by_marker = index_assignments(assignments)
    submitted: Dict[str, Set[str]] = defaultdict(set)
    for sub in submissions:
        submitted[sub.marker_admin_id].add(sub.subject_user_id)
    pending = {}
    for marker_id in sorted(subjects_by_marker):
        remaining = len(subjects_by_marker[marker_id] - submitted.get(marker_id, set()))
        if remaining > 0:
            pending[marker_id] = remaining
    return pending


def aggregate_month(weekly_results: Iterable[WeeklyResult]) -> List[SubjectMonthScore]:
    scores_by_subject: Dict[str, List[Decimal]] = defaultdict(list)
    for wr in weekly_results:
        scores_by_subject[wr.subject_user_id].append(wr.weekly_avg_score)
    return [
        SubjectMonthScore(
            subject_user_id=subject_id,
            monthly_score=mean2(scores),
            weeks_count_used=len(scores),
        )
        for subject_id, scores in sorted(scores_by_subject.items())
    ]
