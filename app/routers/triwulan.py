from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.core.auth import get_current_user, get_current_manager
from app.core.roles import RoleDirectory, get_role_directory
from app.models.triwulan import TriwulanPeriod
from app.schemas.triwulan import (
    TriwulanPeriodResponse, CandidateItem, VoteRequest, VotesResponse, VoteCompletionResponse,
    ParticipationStatus, VoteTally, RatingRequest, RatingScoresResponse, RatingMapResponse,
    CandidateScore, WinnerRequest, WinnerResponse
)
from app.services import triwulan as triwulan_service

router = APIRouter(prefix="/triwulan", tags=["triwulan"])


async def _period(period_id: int, db: AsyncSession = Depends(get_db)) -> TriwulanPeriod:
    return await triwulan_service.get_triwulan_period(db, period_id)


@router.get("/periods", response_model=List[TriwulanPeriodResponse])
async def list_periods(
    active: bool = False,
    db: AsyncSession = Depends(get_db)
):
    return await triwulan_service.list_triwulan_periods(db, active_only=active)

@router.get("/{period_id}/candidates", response_model=List[CandidateItem])
async def get_candidates(
    period: TriwulanPeriod = Depends(_period),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await triwulan_service.list_candidates(db, period.id)

# ── Votes ─────────────────────────────────────────────────

@router.get("/{period_id}/votes", response_model=VotesResponse)
async def get_my_votes(
    period: TriwulanPeriod = Depends(_period),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return VotesResponse(votes=await triwulan_service.list_votes(db, period.id, current_user.id))

@router.post("/{period_id}/votes", response_model=VotesResponse)
async def cast_votes(
    vote_in: VoteRequest,
    period: TriwulanPeriod = Depends(_period),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    ballot = await triwulan_service.save_votes(db, period.id, current_user.id, vote_in.candidate_ids)
    return VotesResponse(votes=ballot)

@router.get("/{period_id}/votes/complete", response_model=VoteCompletionResponse)
async def get_vote_completion(
    period: TriwulanPeriod = Depends(_period),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    completed = await triwulan_service.has_completed_votes(db, period.id, current_user.id)
    return VoteCompletionResponse(completed=completed)

@router.post("/{period_id}/votes/complete", response_model=VoteCompletionResponse)
async def complete_votes(
    period: TriwulanPeriod = Depends(_period),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    await triwulan_service.complete_votes(db, period.id, current_user.id)
    return VoteCompletionResponse(completed=True)

@router.get("/{period_id}/votes/status", response_model=ParticipationStatus)
async def get_vote_status(
    period: TriwulanPeriod = Depends(_period),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    roles: RoleDirectory = Depends(get_role_directory)
):
    return await triwulan_service.vote_status(db, period.id, roles)

@router.get("/{period_id}/votes/top", response_model=List[VoteTally])
async def get_top_candidates(
    limit: int = Query(10),
    period: TriwulanPeriod = Depends(_period),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await triwulan_service.top_candidates(db, period.id, limit=limit)

# ── Ratings ───────────────────────────────────────────────

@router.post("/{period_id}/ratings")
async def rate_candidate(
    rating_in: RatingRequest,
    period: TriwulanPeriod = Depends(_period),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    await triwulan_service.save_rating(db, period.id, current_user.id, rating_in.candidate_id, rating_in.scores)
    return {"success": True}

@router.get("/{period_id}/ratings", response_model=RatingScoresResponse)
async def get_my_rating(
    candidate_id: int,
    period: TriwulanPeriod = Depends(_period),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    scores = await triwulan_service.get_rating(db, period.id, current_user.id, candidate_id)
    return RatingScoresResponse(scores=scores)

@router.get("/{period_id}/ratings/map", response_model=RatingMapResponse)
async def get_my_rating_map(
    period: TriwulanPeriod = Depends(_period),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return RatingMapResponse(map=await triwulan_service.rating_map(db, period.id, current_user.id))

@router.get("/{period_id}/ratings/scores", response_model=List[CandidateScore])
async def get_candidate_scores(
    period: TriwulanPeriod = Depends(_period),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await triwulan_service.candidate_scores(db, period.id)

@router.get("/{period_id}/ratings/status", response_model=ParticipationStatus)
async def get_rating_status(
    period: TriwulanPeriod = Depends(_period),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    roles: RoleDirectory = Depends(get_role_directory)
):
    return await triwulan_service.rating_status(db, period.id, roles)

# ── Winner ────────────────────────────────────────────────

@router.get("/{period_id}/winner", response_model=Optional[WinnerResponse])
async def get_winner(
    period: TriwulanPeriod = Depends(_period),
    db: AsyncSession = Depends(get_db)
):
    return await triwulan_service.get_winner(db, period.id)

@router.post("/{period_id}/winner", response_model=WinnerResponse)
async def set_winner(
    winner_in: WinnerRequest,
    period: TriwulanPeriod = Depends(_period),
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    return await triwulan_service.set_winner(db, period.id, winner_in.winner_id, winner_in.total_score)
