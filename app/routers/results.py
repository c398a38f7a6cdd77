from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.core.auth import get_current_user
from app.core.roles import RoleDirectory, get_role_directory
from app.models.user import User
from app.schemas.results import WeightedResults, TeamPerformanceResponse
from app.services import scoring

router = APIRouter(prefix="/results", tags=["results"])

def ensure_can_view(current_user: User, target_id: int, roles: RoleDirectory):
    if target_id == current_user.id:
        return
    if roles.is_admin(current_user.id) or roles.is_supervisor(current_user.id):
        return
    raise HTTPException(403, "Not allowed to view this user's results")

@router.get("/weighted", response_model=WeightedResults)
async def get_weighted_results(
    user_id: Optional[int] = Query(None),
    period_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    roles: RoleDirectory = Depends(get_role_directory)
):
    assessee_id = user_id or current_user.id
    ensure_can_view(current_user, assessee_id, roles)
    return await scoring.get_aspect_results(db, assessee_id, roles, period_id=period_id)

@router.get("/team-performance", response_model=TeamPerformanceResponse)
async def get_team_performance(
    user_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    roles: RoleDirectory = Depends(get_role_directory)
):
    if await db.get(User, user_id) is None:
        raise HTTPException(404, "User not found")
    ensure_can_view(current_user, user_id, roles)
    performance = await scoring.get_team_performance(db, user_id, roles)
    return TeamPerformanceResponse(performance=performance)
