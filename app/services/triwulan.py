# app/services/triwulan.py
"""
Employee of the quarter.

A quarter runs in two rounds. Employees with no working-hour deficiency
in any month of the quarter are the candidates; everyone votes for the
candidates they support, then rates candidates on a fixed form, and a
manager records the winner.
"""
import logging
from datetime import date, timedelta
from typing import Dict, List, Optional, Set

from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import BadRequest, NotFound
from app.core.roles import RoleDirectory
from app.models.period import AssessmentPeriod
from app.models.triwulan import (
    TriwulanDeficiency,
    TriwulanPeriod,
    TriwulanRating,
    TriwulanVote,
    TriwulanVoteCompletion,
    TriwulanWinner,
)
from app.models.user import User
from app.schemas.triwulan import (
    MAX_CRITERION_SCORE,
    CandidateItem,
    CandidateScore,
    DeficiencyItem,
    ParticipationStatus,
    TriwulanPeriodCreate,
    VoteTally,
)
from app.services.periods import calendar_month_window, months_between, utcnow

logger = logging.getLogger(__name__)


# ── Periods ───────────────────────────────────────────────────────────────────

async def get_triwulan_period(db: AsyncSession, period_id: int) -> TriwulanPeriod:
    period = await db.get(TriwulanPeriod, period_id)
    if period is None:
        raise NotFound("Triwulan period not found")
    return period


async def list_triwulan_periods(
    db: AsyncSession, active_only: bool = False, today: Optional[date] = None
) -> List[TriwulanPeriod]:
    """Newest quarter first. ``active_only`` yields at most one period."""
    result = await db.execute(
        select(TriwulanPeriod).order_by(TriwulanPeriod.year.desc(), TriwulanPeriod.quarter.desc())
    )
    periods = list(result.scalars().all())
    if not active_only:
        return periods

    # A flagged quarter wins over one that merely covers today
    today = today or utcnow().date()
    active = next((p for p in periods if p.is_active), None)
    if active is None:
        active = next((p for p in periods if p.covers(today)), None)
    return [active] if active else []


async def _ensure_assessment_months(db: AsyncSession, start: date, end: date) -> int:
    """Create an inactive monthly assessment period for each month not set up yet."""
    created = 0
    for year, month in months_between(start, end):
        existing = await db.execute(
            select(AssessmentPeriod.id)
            .where(AssessmentPeriod.year == year)
            .where(AssessmentPeriod.month == month)
            .limit(1)
        )
        if existing.scalar_one_or_none() is not None:
            continue
        window = calendar_month_window(year, month)
        db.add(AssessmentPeriod(
            month=month,
            year=year,
            start_date=window.start.date(),
            end_date=(window.end_exclusive - timedelta(days=1)).date(),
            is_active=False,
            is_completed=False,
        ))
        created += 1
    return created


async def _deactivate_others(db: AsyncSession, period: TriwulanPeriod) -> None:
    await db.execute(
        update(TriwulanPeriod)
        .where(TriwulanPeriod.id != period.id)
        .where(TriwulanPeriod.is_active.is_(True))
        .values(is_active=False)
    )


async def create_triwulan_period(db: AsyncSession, data: TriwulanPeriodCreate) -> TriwulanPeriod:
    period = TriwulanPeriod(
        year=data.year,
        quarter=data.quarter,
        start_date=data.start_date,
        end_date=data.end_date,
        is_active=False,
    )
    try:
        db.add(period)
        await db.flush()
        months = await _ensure_assessment_months(db, data.start_date, data.end_date)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BadRequest(f"Triwulan {data.year}-Q{data.quarter} already exists")
    except Exception:
        await db.rollback()
        raise

    await db.refresh(period)
    logger.info("Created triwulan %s (%s assessment months added)", period.code, months)
    return period


async def update_triwulan_period(db: AsyncSession, period_id: int, updates: dict) -> TriwulanPeriod:
    period = await get_triwulan_period(db, period_id)
    activate = updates.pop("is_active", None)
    for field, value in updates.items():
        setattr(period, field, value)
    if period.start_date > period.end_date:
        await db.rollback()
        raise BadRequest("end_date must not be before start_date")

    try:
        if activate:
            await _deactivate_others(db, period)
            period.is_active = True
        elif activate is False:
            period.is_active = False
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BadRequest("Another triwulan already uses that year and quarter")
    except Exception:
        await db.rollback()
        raise

    await db.refresh(period)
    return period


async def delete_triwulan_period(db: AsyncSession, period_id: int) -> None:
    """Delete a quarter together with its deficiencies, votes, ratings and winner."""
    period = await get_triwulan_period(db, period_id)
    try:
        for model in (TriwulanDeficiency, TriwulanVote, TriwulanVoteCompletion, TriwulanRating, TriwulanWinner):
            await db.execute(delete(model).where(model.period_id == period_id))
        await db.delete(period)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Deleted triwulan period %s", period_id)


async def forget_user(db: AsyncSession, user_id: int) -> None:
    """Drop a user's triwulan rows ahead of deleting the user. Caller commits."""
    await db.execute(delete(TriwulanVote).where(
        or_(TriwulanVote.voter_id == user_id, TriwulanVote.candidate_id == user_id)
    ))
    await db.execute(delete(TriwulanVoteCompletion).where(TriwulanVoteCompletion.voter_id == user_id))
    await db.execute(delete(TriwulanRating).where(
        or_(TriwulanRating.rater_id == user_id, TriwulanRating.candidate_id == user_id)
    ))
    await db.execute(delete(TriwulanWinner).where(TriwulanWinner.winner_id == user_id))
    await db.execute(delete(TriwulanDeficiency).where(TriwulanDeficiency.user_id == user_id))
    await db.execute(
        update(TriwulanDeficiency).where(TriwulanDeficiency.filled_by == user_id).values(filled_by=None)
    )


# ── Deficiencies and candidates ───────────────────────────────────────────────

async def upsert_deficiencies(
    db: AsyncSession, period_id: int, rows: List[DeficiencyItem], filled_by: int
) -> int:
    period = await get_triwulan_period(db, period_id)
    months = set(months_between(period.start_date, period.end_date))
    for row in rows:
        if (row.year, row.month) not in months:
            raise BadRequest(f"{row.year}-{row.month:02d} is outside triwulan {period.code}")
    await _require_users(db, {row.user_id for row in rows})

    try:
        for row in rows:
            existing = (await db.execute(
                select(TriwulanDeficiency)
                .where(TriwulanDeficiency.period_id == period_id)
                .where(TriwulanDeficiency.user_id == row.user_id)
                .where(TriwulanDeficiency.year == row.year)
                .where(TriwulanDeficiency.month == row.month)
            )).scalar_one_or_none()
            if existing is None:
                db.add(TriwulanDeficiency(period_id=period_id, filled_by=filled_by, **row.model_dump()))
            else:
                existing.deficiency_hours = row.deficiency_hours
                existing.filled_by = filled_by
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("User %s filled %s deficiency rows for triwulan %s", filled_by, len(rows), period.code)
    return len(rows)


async def list_deficiencies(db: AsyncSession, period_id: int) -> List[TriwulanDeficiency]:
    result = await db.execute(
        select(TriwulanDeficiency)
        .where(TriwulanDeficiency.period_id == period_id)
        .order_by(TriwulanDeficiency.user_id, TriwulanDeficiency.year, TriwulanDeficiency.month)
    )
    return list(result.scalars().all())


async def list_candidates(db: AsyncSession, period_id: int) -> List[CandidateItem]:
    """Users whose deficiency hours for the quarter add up to zero."""
    total_hours = func.coalesce(func.sum(TriwulanDeficiency.deficiency_hours), 0)
    result = await db.execute(
        select(User.id, User.name, User.position, User.department)
        .join(TriwulanDeficiency, TriwulanDeficiency.user_id == User.id)
        .where(TriwulanDeficiency.period_id == period_id)
        .group_by(User.id, User.name, User.position, User.department)
        .having(total_hours == 0)
        .order_by(User.name, User.id)
    )
    return [
        CandidateItem(user_id=user_id, name=name, position=position, department=department)
        for user_id, name, position, department in result.all()
    ]


async def _require_users(db: AsyncSession, user_ids: Set[int]) -> None:
    found = await db.execute(select(User.id).where(User.id.in_(sorted(user_ids))))
    missing = user_ids - set(found.scalars().all())
    if missing:
        raise NotFound(f"Unknown user(s): {', '.join(str(i) for i in sorted(missing))}")


async def _required_count(db: AsyncSession, roles: RoleDirectory) -> int:
    query = select(func.count(User.id)).where(User.is_active.is_(True))
    if roles.admin_ids:
        query = query.where(User.id.notin_(sorted(roles.admin_ids)))
    return (await db.execute(query)).scalar_one()


# ── Votes ─────────────────────────────────────────────────────────────────────

async def save_votes(db: AsyncSession, period_id: int, voter_id: int, candidate_ids: List[int]) -> List[int]:
    """Replace the voter's ballot for the quarter."""
    await get_triwulan_period(db, period_id)
    ballot = sorted(set(candidate_ids))
    if not ballot:
        raise BadRequest("At least one candidate is required")
    await _require_users(db, set(ballot))

    try:
        await db.execute(
            delete(TriwulanVote)
            .where(TriwulanVote.period_id == period_id)
            .where(TriwulanVote.voter_id == voter_id)
        )
        db.add_all([
            TriwulanVote(period_id=period_id, voter_id=voter_id, candidate_id=candidate_id)
            for candidate_id in ballot
        ])
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("User %s voted for %s candidates in triwulan %s", voter_id, len(ballot), period_id)
    return ballot


async def list_votes(db: AsyncSession, period_id: int, voter_id: int) -> List[int]:
    result = await db.execute(
        select(TriwulanVote.candidate_id)
        .where(TriwulanVote.period_id == period_id)
        .where(TriwulanVote.voter_id == voter_id)
        .order_by(TriwulanVote.candidate_id)
    )
    return list(result.scalars().all())


async def complete_votes(db: AsyncSession, period_id: int, voter_id: int) -> None:
    """Mark the voter as done. Marking twice is a no-op."""
    await get_triwulan_period(db, period_id)
    if await has_completed_votes(db, period_id, voter_id):
        return
    try:
        async with db.begin_nested():
            db.add(TriwulanVoteCompletion(period_id=period_id, voter_id=voter_id))
        await db.commit()
    except IntegrityError:
        # Completed concurrently by another request
        await db.rollback()


async def has_completed_votes(db: AsyncSession, period_id: int, voter_id: int) -> bool:
    result = await db.execute(
        select(TriwulanVoteCompletion.id)
        .where(TriwulanVoteCompletion.period_id == period_id)
        .where(TriwulanVoteCompletion.voter_id == voter_id)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def vote_status(db: AsyncSession, period_id: int, roles: RoleDirectory) -> ParticipationStatus:
    result = await db.execute(
        select(TriwulanVoteCompletion.voter_id)
        .where(TriwulanVoteCompletion.period_id == period_id)
        .order_by(TriwulanVoteCompletion.voter_id)
    )
    completed = list(result.scalars().all())
    return ParticipationStatus(
        required_count=await _required_count(db, roles),
        completed_count=len(completed),
        completed_user_ids=completed,
    )


async def top_candidates(db: AsyncSession, period_id: int, limit: int = 10) -> List[VoteTally]:
    limit = max(1, min(100, limit))
    vote_count = func.count(TriwulanVote.id).label("vote_count")
    result = await db.execute(
        select(TriwulanVote.candidate_id, User.name, vote_count)
        .join(User, User.id == TriwulanVote.candidate_id)
        .where(TriwulanVote.period_id == period_id)
        .group_by(TriwulanVote.candidate_id, User.name)
        .order_by(vote_count.desc(), User.name, TriwulanVote.candidate_id)
        .limit(limit)
    )
    return [
        VoteTally(candidate_id=candidate_id, name=name, vote_count=count, rank=idx + 1)
        for idx, (candidate_id, name, count) in enumerate(result.all())
    ]


# ── Ratings ───────────────────────────────────────────────────────────────────

async def save_rating(
    db: AsyncSession, period_id: int, rater_id: int, candidate_id: int, scores: List[float]
) -> TriwulanRating:
    await get_triwulan_period(db, period_id)
    await _require_users(db, {candidate_id})

    try:
        rating = (await db.execute(
            select(TriwulanRating)
            .where(TriwulanRating.period_id == period_id)
            .where(TriwulanRating.rater_id == rater_id)
            .where(TriwulanRating.candidate_id == candidate_id)
        )).scalar_one_or_none()
        if rating is None:
            rating = TriwulanRating(period_id=period_id, rater_id=rater_id, candidate_id=candidate_id, scores=scores)
            db.add(rating)
        else:
            rating.scores = list(scores)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(rating)
    return rating


async def get_rating(db: AsyncSession, period_id: int, rater_id: int, candidate_id: int) -> Optional[List[float]]:
    result = await db.execute(
        select(TriwulanRating.scores)
        .where(TriwulanRating.period_id == period_id)
        .where(TriwulanRating.rater_id == rater_id)
        .where(TriwulanRating.candidate_id == candidate_id)
    )
    return result.scalar_one_or_none()


async def rating_map(db: AsyncSession, period_id: int, rater_id: int) -> Dict[int, List[float]]:
    result = await db.execute(
        select(TriwulanRating.candidate_id, TriwulanRating.scores)
        .where(TriwulanRating.period_id == period_id)
        .where(TriwulanRating.rater_id == rater_id)
    )
    return {candidate_id: scores for candidate_id, scores in result.all()}


async def candidate_scores(db: AsyncSession, period_id: int) -> List[CandidateScore]:
    """
    Aggregate every rating form of the quarter per candidate.

    ``total_score`` sums every criterion of every form, ``num_raters``
    counts forms, and ``score_percent`` is the mean criterion score as a
    percentage of the maximum, clamped to 0-100. Highest total first.
    """
    result = await db.execute(
        select(TriwulanRating.candidate_id, TriwulanRating.scores)
        .where(TriwulanRating.period_id == period_id)
    )
    totals: Dict[int, List[float]] = {}
    raters: Dict[int, int] = {}
    for candidate_id, scores in result.all():
        totals.setdefault(candidate_id, []).extend(float(s) for s in scores)
        raters[candidate_id] = raters.get(candidate_id, 0) + 1

    summary = []
    for candidate_id, values in totals.items():
        average = sum(values) / len(values) if values else 0.0
        summary.append(CandidateScore(
            candidate_id=candidate_id,
            total_score=sum(values),
            num_raters=raters[candidate_id],
            score_percent=max(0.0, min(100.0, average / MAX_CRITERION_SCORE * 100)),
        ))
    summary.sort(key=lambda s: (-s.total_score, s.candidate_id))
    return summary


async def rating_status(db: AsyncSession, period_id: int, roles: RoleDirectory) -> ParticipationStatus:
    result = await db.execute(
        select(TriwulanRating.rater_id)
        .where(TriwulanRating.period_id == period_id)
        .distinct()
        .order_by(TriwulanRating.rater_id)
    )
    completed = list(result.scalars().all())
    return ParticipationStatus(
        required_count=await _required_count(db, roles),
        completed_count=len(completed),
        completed_user_ids=completed,
    )


# ── Winner ────────────────────────────────────────────────────────────────────

async def set_winner(
    db: AsyncSession, period_id: int, winner_id: int, total_score: Optional[float] = None
) -> TriwulanWinner:
    await get_triwulan_period(db, period_id)
    await _require_users(db, {winner_id})

    try:
        winner = (await db.execute(
            select(TriwulanWinner).where(TriwulanWinner.period_id == period_id)
        )).scalar_one_or_none()
        if winner is None:
            winner = TriwulanWinner(period_id=period_id, winner_id=winner_id, total_score=total_score)
            db.add(winner)
        else:
            winner.winner_id = winner_id
            winner.total_score = total_score
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(winner)
    logger.info("Triwulan %s winner set to user %s", period_id, winner_id)
    return winner


async def get_winner(db: AsyncSession, period_id: int) -> Optional[TriwulanWinner]:
    result = await db.execute(select(TriwulanWinner).where(TriwulanWinner.period_id == period_id))
    return result.scalar_one_or_none()
