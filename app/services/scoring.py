# app/services/scoring.py
"""
Supervisor / peer weighted scoring of 360 feedback.

Supervisor ratings count 60% and peer ratings 40%. Two averaging policies
are in use and must stay distinct: per-aspect results drop an empty side
(``NullPropagatingWeightedAverage``), the team performance view treats an
empty side as zero (``ZeroFillingWeightedAverage``).
"""
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, List, NamedTuple, Optional, Sequence

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import RoleDirectory
from app.models.assessment import AssessmentAssignment, FeedbackResponse
from app.models.period import AssessmentPeriod
from app.models.user import User
from app.schemas.period import PeriodResponse
from app.schemas.results import AspectResult, TeamPerformance, WeightedResults
from app.services.periods import PeriodKind, get_active_period

SUPERVISOR_WEIGHT = 0.6
PEER_WEIGHT = 0.4


class RatingRow(NamedTuple):
    assessor_id: int
    aspect: str
    rating: int


def mean(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


class NullPropagatingWeightedAverage:
    """Blend both sides when present, otherwise use whichever side exists."""

    def combine(self, supervisor_ratings: Sequence[float], peer_ratings: Sequence[float]) -> Optional[float]:
        supervisor_avg = mean(supervisor_ratings)
        peer_avg = mean(peer_ratings)
        if supervisor_avg is not None and peer_avg is not None:
            return supervisor_avg * SUPERVISOR_WEIGHT + peer_avg * PEER_WEIGHT
        if supervisor_avg is not None:
            return supervisor_avg
        return peer_avg


class ZeroFillingWeightedAverage:
    """Always blend; an empty side contributes 0."""

    def combine(self, supervisor_ratings: Sequence[float], peer_ratings: Sequence[float]) -> float:
        supervisor_avg = mean(supervisor_ratings) or 0.0
        peer_avg = mean(peer_ratings) or 0.0
        return SUPERVISOR_WEIGHT * supervisor_avg + PEER_WEIGHT * peer_avg


@dataclass
class _AspectGroup:
    supervisor_ratings: List[int]
    peer_ratings: List[int]
    assessors: set


def _scored_rows(rows: Iterable[RatingRow], roles: RoleDirectory) -> List[RatingRow]:
    return [row for row in rows if not roles.is_admin(row.assessor_id)]


def compute_aspect_results(
    rows: Iterable[RatingRow],
    roles: RoleDirectory,
    strategy: Optional[NullPropagatingWeightedAverage] = None,
) -> List[AspectResult]:
    strategy = strategy or NullPropagatingWeightedAverage()

    groups: "OrderedDict[str, _AspectGroup]" = OrderedDict()
    for row in _scored_rows(rows, roles):
        group = groups.setdefault(row.aspect, _AspectGroup([], [], set()))
        group.assessors.add(row.assessor_id)
        if roles.is_supervisor(row.assessor_id):
            group.supervisor_ratings.append(row.rating)
        else:
            group.peer_ratings.append(row.rating)

    return [
        AspectResult(
            aspect=aspect,
            supervisor_average=mean(group.supervisor_ratings),
            peer_average=mean(group.peer_ratings),
            final_score=strategy.combine(group.supervisor_ratings, group.peer_ratings),
            total_feedback=len(group.assessors),
            has_supervisor_assessment=bool(group.supervisor_ratings),
            has_peer_assessment=bool(group.peer_ratings),
        )
        for aspect, group in groups.items()
    ]


def compute_overall_score(aspect_results: Iterable[AspectResult]) -> float:
    scores = [a.final_score for a in aspect_results if a.final_score is not None]
    if not scores:
        return 0
    return sum(scores) / len(scores)


def compute_team_score(
    rows: Iterable[RatingRow],
    roles: RoleDirectory,
    strategy: Optional[ZeroFillingWeightedAverage] = None,
) -> float:
    """Weighted score over every response, ignoring aspects."""
    strategy = strategy or ZeroFillingWeightedAverage()
    rows = _scored_rows(rows, roles)
    supervisor_ratings = [r.rating for r in rows if roles.is_supervisor(r.assessor_id)]
    peer_ratings = [r.rating for r in rows if not roles.is_supervisor(r.assessor_id)]
    return strategy.combine(supervisor_ratings, peer_ratings)


async def fetch_rating_rows(
    db: AsyncSession, assessee_id: int, period_id: Optional[int] = None
) -> List[RatingRow]:
    query = (
        select(AssessmentAssignment.assessor_id, FeedbackResponse.aspect, FeedbackResponse.rating)
        .join(AssessmentAssignment, AssessmentAssignment.id == FeedbackResponse.assignment_id)
        .where(AssessmentAssignment.assessee_id == assessee_id)
        .order_by(FeedbackResponse.created_at.desc(), FeedbackResponse.id.desc())
    )
    if period_id is not None:
        query = query.where(AssessmentAssignment.period_id == period_id)
    result = await db.execute(query)
    return [RatingRow(*row) for row in result.all()]


async def get_aspect_results(
    db: AsyncSession, assessee_id: int, roles: RoleDirectory, period_id: Optional[int] = None
) -> WeightedResults:
    rows = await fetch_rating_rows(db, assessee_id, period_id)
    aspect_results = compute_aspect_results(rows, roles)

    scored = _scored_rows(rows, roles)
    supervisor_ids = {r.assessor_id for r in scored if roles.is_supervisor(r.assessor_id)}
    peer_ids = {r.assessor_id for r in scored if not roles.is_supervisor(r.assessor_id)}

    period = None
    if period_id is not None:
        period = await db.get(AssessmentPeriod, period_id)
    elif rows:
        # Period of the most recent response
        result = await db.execute(
            select(AssessmentPeriod)
            .join(AssessmentAssignment, AssessmentAssignment.period_id == AssessmentPeriod.id)
            .join(FeedbackResponse, FeedbackResponse.assignment_id == AssessmentAssignment.id)
            .where(AssessmentAssignment.assessee_id == assessee_id)
            .order_by(FeedbackResponse.created_at.desc(), FeedbackResponse.id.desc())
            .limit(1)
        )
        period = result.scalar_one_or_none()

    return WeightedResults(
        aspect_results=aspect_results,
        overall_score=compute_overall_score(aspect_results),
        total_feedback=len(scored),
        supervisor_feedback_count=len(supervisor_ids),
        peer_feedback_count=len(peer_ids),
        has_supervisor_assessment=bool(supervisor_ids),
        has_peer_assessment=bool(peer_ids),
        period=PeriodResponse.model_validate(period) if period is not None else None,
    )


async def get_team_performance(
    db: AsyncSession, assessee_id: int, roles: RoleDirectory
) -> Optional[TeamPerformance]:
    period = await get_active_period(db, PeriodKind.ASSESSMENT)
    if period is None:
        return None

    rows = await fetch_rating_rows(db, assessee_id, period.id)
    assessors = {r.assessor_id for r in _scored_rows(rows, roles)}

    result = await db.execute(
        select(AssessmentAssignment.is_completed, func.count(AssessmentAssignment.id))
        .where(AssessmentAssignment.assessor_id == assessee_id)
        .where(AssessmentAssignment.period_id == period.id)
        .group_by(AssessmentAssignment.is_completed)
    )
    counts = {bool(done): n for done, n in result.all()}
    completed = counts.get(True, 0)
    max_assignments = completed + counts.get(False, 0)

    employees = select(func.count(User.id))
    if roles.admin_ids:
        employees = employees.where(User.id.notin_(sorted(roles.admin_ids)))
    total_employees = (await db.execute(employees)).scalar_one()

    return TeamPerformance(
        average_rating=compute_team_score(rows, roles),
        total_feedback=len(assessors),
        total_employees=total_employees,
        max_assignments=max_assignments,
        completed_assessments=completed,
        pending_assessments=max(0, max_assignments - completed),
        period_progress=(completed / max_assignments) * 100 if max_assignments else 0.0,
        period=PeriodResponse.model_validate(period),
    )
