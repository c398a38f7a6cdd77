from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.core.auth import get_current_user
from app.core.roles import RoleDirectory, get_role_directory
from app.data.aspects import ASSESSMENT_ASPECTS
from app.schemas.assessment import (
    SubmissionRequest, SubmissionResponse, AssignmentItem, AssesseeBrief, FeedbackResponseItem
)
from app.schemas.period import PeriodResponse
from app.services import assessment as assessment_service
from app.services.periods import PeriodKind, get_active_period

router = APIRouter(prefix="/assessment", tags=["assessment"])

@router.get("/aspects")
async def list_aspects():
    return ASSESSMENT_ASPECTS

@router.get("/current-period", response_model=Optional[PeriodResponse])
async def get_current_period(db: AsyncSession = Depends(get_db)):
    return await get_active_period(db, PeriodKind.ASSESSMENT)

@router.get("/my-assignments", response_model=List[AssignmentItem])
async def get_my_assignments(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    roles: RoleDirectory = Depends(get_role_directory)
):
    return await assessment_service.list_my_assignments(db, current_user.id, roles)

@router.get("/assessable-users", response_model=List[AssesseeBrief])
async def get_assessable_users(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    roles: RoleDirectory = Depends(get_role_directory)
):
    if not roles.is_supervisor(current_user.id):
        raise HTTPException(403, "Supervisor access required")
    return await assessment_service.list_assessable_users(db, current_user.id, roles)

@router.get("/responses/{assignment_id}", response_model=List[FeedbackResponseItem])
async def get_responses(
    assignment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await assessment_service.get_assignment_responses(db, assignment_id, current_user.id)

@router.post("/submit", response_model=SubmissionResponse)
async def submit(
    submission: SubmissionRequest,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    roles: RoleDirectory = Depends(get_role_directory)
):
    assignment = await assessment_service.submit_assessment(db, current_user.id, submission, roles)
    return SubmissionResponse(assignment_id=assignment.id)
