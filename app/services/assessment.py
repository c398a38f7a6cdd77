# app/services/assessment.py
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import BadRequest, Forbidden, NoActivePeriod, NotFound
from app.core.roles import RoleDirectory
from app.models.assessment import AssessmentAssignment, FeedbackResponse
from app.models.user import User
from app.schemas.assessment import AssesseeBrief, AssignmentItem, SubmissionRequest
from app.services.periods import PeriodKind, get_active_period, utcnow

logger = logging.getLogger(__name__)


async def list_assessable_users(db: AsyncSession, supervisor_id: int, roles: RoleDirectory) -> List[User]:
    """Every profile a supervisor may rate: all but admins and themselves."""
    excluded = roles.admin_ids | {supervisor_id}
    result = await db.execute(
        select(User).where(User.id.notin_(sorted(excluded))).order_by(User.name, User.id)
    )
    return list(result.scalars().all())


async def _supervisor_assignment(
    db: AsyncSession, assessor_id: int, assessee_id: Optional[int], roles: RoleDirectory
) -> AssessmentAssignment:
    period = await get_active_period(db, PeriodKind.ASSESSMENT)
    if period is None:
        raise NoActivePeriod("No active assessment period")
    if assessee_id is None:
        raise BadRequest("Missing assessee_id")
    if assessee_id == assessor_id or roles.is_admin(assessee_id):
        raise Forbidden("This user cannot be assessed")
    if await db.get(User, assessee_id) is None:
        raise NotFound("Assessee not found")

    result = await db.execute(
        select(AssessmentAssignment)
        .where(AssessmentAssignment.assessor_id == assessor_id)
        .where(AssessmentAssignment.assessee_id == assessee_id)
        .where(AssessmentAssignment.period_id == period.id)
    )
    assignment = result.scalar_one_or_none()
    if assignment is None:
        assignment = AssessmentAssignment(
            assessor_id=assessor_id,
            assessee_id=assessee_id,
            period_id=period.id,
            is_completed=False,
        )
        db.add(assignment)
        await db.flush()
    return assignment


async def _owned_assignment(db: AsyncSession, assessor_id: int, assignment_id: Optional[int]) -> AssessmentAssignment:
    if assignment_id is None:
        raise BadRequest("Missing assignment_id")
    assignment = await db.get(AssessmentAssignment, assignment_id)
    if assignment is None or assignment.assessor_id != assessor_id:
        logger.warning("User %s denied submission for assignment %s", assessor_id, assignment_id)
        raise Forbidden()
    return assignment


async def submit_assessment(
    db: AsyncSession,
    assessor_id: int,
    request: SubmissionRequest,
    roles: RoleDirectory,
    now: Optional[datetime] = None,
) -> AssessmentAssignment:
    """Replace every response of the assignment and mark it completed."""
    now = now or utcnow()
    try:
        if roles.is_supervisor(assessor_id):
            assignment = await _supervisor_assignment(db, assessor_id, request.assessee_id, roles)
        else:
            assignment = await _owned_assignment(db, assessor_id, request.assignment_id)

        await db.execute(
            delete(FeedbackResponse)
            .where(FeedbackResponse.assignment_id == assignment.id)
            .execution_options(synchronize_session=False)
        )
        db.add_all([
            FeedbackResponse(
                assignment_id=assignment.id,
                aspect=item.aspect,
                indicator=item.indicator,
                rating=item.rating,
                comment=item.comment,
            )
            for item in request.responses
        ])
        assignment.is_completed = True
        assignment.completed_at = now
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "User %s submitted %s responses for assignment %s",
        assessor_id, len(request.responses), assignment.id,
    )
    return assignment


async def list_my_assignments(db: AsyncSession, user_id: int, roles: RoleDirectory) -> List[AssignmentItem]:
    period = await get_active_period(db, PeriodKind.ASSESSMENT)
    if period is None:
        return []

    if roles.is_supervisor(user_id):
        # Supervisors rate everyone; persisted rows exist only after a submission
        existing = await db.execute(
            select(AssessmentAssignment)
            .where(AssessmentAssignment.assessor_id == user_id)
            .where(AssessmentAssignment.period_id == period.id)
        )
        by_assessee = {a.assessee_id: a for a in existing.scalars()}
        items = []
        for target in await list_assessable_users(db, user_id, roles):
            assignment = by_assessee.get(target.id)
            items.append(AssignmentItem(
                id=assignment.id if assignment else None,
                period_id=period.id,
                assessor_id=user_id,
                assessee_id=target.id,
                is_completed=assignment.is_completed if assignment else None,
                completed_at=assignment.completed_at if assignment else None,
                assessee=AssesseeBrief.model_validate(target),
            ))
        return items

    result = await db.execute(
        select(AssessmentAssignment, User)
        .join(User, User.id == AssessmentAssignment.assessee_id)
        .where(AssessmentAssignment.assessor_id == user_id)
        .where(AssessmentAssignment.period_id == period.id)
        .order_by(AssessmentAssignment.created_at.desc(), AssessmentAssignment.id.desc())
    )
    return [
        AssignmentItem(
            id=assignment.id,
            period_id=assignment.period_id,
            assessor_id=assignment.assessor_id,
            assessee_id=assignment.assessee_id,
            is_completed=assignment.is_completed,
            completed_at=assignment.completed_at,
            assessee=AssesseeBrief.model_validate(assessee),
        )
        for assignment, assessee in result.all()
    ]


async def get_assignment_responses(db: AsyncSession, assignment_id: int, user_id: int) -> List[FeedbackResponse]:
    """Saved responses of an assignment, for its assessor only."""
    assignment = await db.get(AssessmentAssignment, assignment_id)
    if assignment is None:
        raise NotFound("Assignment not found")
    if assignment.assessor_id != user_id:
        raise Forbidden()
    result = await db.execute(
        select(FeedbackResponse)
        .where(FeedbackResponse.assignment_id == assignment_id)
        .order_by(FeedbackResponse.id)
    )
    return list(result.scalars().all())
