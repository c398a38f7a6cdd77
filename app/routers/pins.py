from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.core.auth import get_current_user
from app.core.roles import RoleDirectory, get_role_directory
from app.models.user import User
from app.schemas.period import PeriodResponse
from app.schemas.pin import (
    PinGiveRequest, PinCancelRequest, GivePinResponse, CancelPinResponse, CancelledAllowance,
    AllowanceSummary, PinHistoryResponse, RankingResponse, RankingItem, PinStats, PinUserBrief
)
from app.services import pins as ledger
from app.services.periods import PeriodKind, get_active_period, utcnow

router = APIRouter(prefix="/pins", tags=["pins"])

@router.post("/give", response_model=GivePinResponse)
async def give_pin(
    pin_in: PinGiveRequest,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    roles: RoleDirectory = Depends(get_role_directory)
):
    if pin_in.receiver_id == current_user.id:
        raise HTTPException(400, "You cannot give a pin to yourself")
    receiver = await db.get(User, pin_in.receiver_id)
    if not receiver or not receiver.is_active:
        raise HTTPException(404, "Receiver not found")
    if roles.is_admin(receiver.id):
        raise HTTPException(400, "Admins cannot receive pins")

    allowance = await ledger.give_pin(db, current_user.id, receiver.id)
    return GivePinResponse(allowance=allowance)

@router.post("/cancel", response_model=CancelPinResponse)
async def cancel_pin(
    cancel_in: PinCancelRequest,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    remaining = await ledger.cancel_pin(db, cancel_in.pin_id, current_user.id)
    return CancelPinResponse(allowance=CancelledAllowance(pins_remaining=remaining))

@router.get("/allowance", response_model=AllowanceSummary)
async def get_allowance(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await ledger.get_allowance(db, current_user.id)

@router.get("/history", response_model=PinHistoryResponse)
async def get_history(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    receiver_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    window = await ledger.resolve_history_window(db, month=month, year=year, start=start, end=end)
    pins = await ledger.list_pin_history(db, current_user.id, window, receiver_id=receiver_id)
    return PinHistoryResponse(pins=pins)

@router.get("/rankings", response_model=RankingResponse)
async def get_rankings(
    limit: int = Query(10),
    period: Optional[str] = Query(None, description="active | month:YYYY-MM | range:YYYY-MM-DD,YYYY-MM-DD"),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    roles: RoleDirectory = Depends(get_role_directory)
):
    window = await ledger.parse_period_filter(db, period)
    rankings = await ledger.pin_rankings(db, roles, window=window, limit=limit)
    return RankingResponse(rankings=rankings)

@router.get("/weekly", response_model=List[RankingItem])
async def get_weekly_rankings(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await ledger.weekly_rankings(db)

@router.get("/monthly", response_model=List[RankingItem])
async def get_monthly_rankings(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    now = utcnow()
    return await ledger.monthly_rankings(db, month or now.month, year or now.year)

@router.get("/participants", response_model=List[PinUserBrief])
async def get_participants(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    roles: RoleDirectory = Depends(get_role_directory)
):
    return await ledger.list_participants(db, roles)

@router.get("/stats", response_model=PinStats)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await ledger.pin_stats(db)

@router.get("/period/active", response_model=Optional[PeriodResponse])
async def get_active_pin_period(db: AsyncSession = Depends(get_db)):
    return await get_active_period(db, PeriodKind.PIN)
