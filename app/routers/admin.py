import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete, or_
from typing import List
from app.database import get_db
from app.core.auth import get_current_admin, get_current_manager
from app.models.user import User
from app.models.assessment import AssessmentAssignment, FeedbackResponse
from app.models.pin import EmployeePin, MonthlyPinAllowance
from app.schemas.user import UserCreate, UserResponse, RoleUpdate
from app.schemas.period import PeriodCreate, PeriodUpdate, PeriodResponse, AssessmentPeriodSummary
from app.schemas.pin import PinPeriodResetResponse
from app.schemas.triwulan import (
    TriwulanPeriodCreate, TriwulanPeriodUpdate, TriwulanPeriodResponse, DeficiencyUpsert, DeficiencyResponse
)
from app.services import triwulan as triwulan_service
from app.services.periods import PeriodKind, activate_period
from app.services.pins import release_pins_received, reset_pin_period
from app.utils.password import hash_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# ── Users ─────────────────────────────────────────────────

@router.get("/users", response_model=List[UserResponse])
async def list_users(
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    result = await db.execute(select(User).order_by(User.name, User.id))
    return result.scalars().all()


@router.post("/users", response_model=UserResponse)
async def create_user(
    user_in: UserCreate,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    existing = await db.execute(select(User).where(User.email == user_in.email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Email already registered")

    try:
        hashed_pw = hash_password(user_in.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    user = User(
        email=user_in.email,
        name=user_in.name,
        hashed_password=hashed_pw,
        role=user_in.role,
        position=user_in.position,
        department=user_in.department,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Admin %s created user %s (%s)", admin.id, user.id, user.role)
    return user


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: int,
    role_in: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(404, "User not found")
    user.role = role_in.role
    await db.commit()
    await db.refresh(user)
    logger.info("Admin %s set role of user %s to %s", admin.id, user_id, role_in.role)
    return user


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    """Delete a user with their pins, allowances, assignments, responses and triwulan rows."""
    if user_id == admin.id:
        raise HTTPException(400, "You cannot delete yourself")
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(404, "User not found")

    assignment_ids = select(AssessmentAssignment.id).where(
        or_(AssessmentAssignment.assessor_id == user_id, AssessmentAssignment.assessee_id == user_id)
    )
    try:
        await db.execute(delete(FeedbackResponse).where(FeedbackResponse.assignment_id.in_(assignment_ids)))
        await db.execute(delete(AssessmentAssignment).where(
            or_(AssessmentAssignment.assessor_id == user_id, AssessmentAssignment.assessee_id == user_id)
        ))
        await release_pins_received(db, user_id)
        await triwulan_service.forget_user(db, user_id)
        pins = await db.execute(delete(EmployeePin).where(
            or_(EmployeePin.giver_id == user_id, EmployeePin.receiver_id == user_id)
        ))
        await db.execute(delete(MonthlyPinAllowance).where(MonthlyPinAllowance.user_id == user_id))
        await db.delete(user)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Admin %s deleted user %s (%s pins removed)", admin.id, user_id, pins.rowcount)
    return {"success": True, "pins_deleted": pins.rowcount}


# ── Periods ───────────────────────────────────────────────

async def _get_period(db: AsyncSession, kind: PeriodKind, period_id: int):
    period = await db.get(kind.model, period_id)
    if not period:
        raise HTTPException(404, f"{kind.value.capitalize()} period not found")
    return period


@router.get("/periods/assessment", response_model=List[AssessmentPeriodSummary])
async def list_assessment_periods(
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    model = PeriodKind.ASSESSMENT.model
    periods = (await db.execute(
        select(model).order_by(model.year.desc(), model.month.desc(), model.id.desc())
    )).scalars().all()

    counts = await db.execute(
        select(AssessmentAssignment.period_id, AssessmentAssignment.is_completed, func.count(AssessmentAssignment.id))
        .group_by(AssessmentAssignment.period_id, AssessmentAssignment.is_completed)
    )
    assigned, completed = {}, {}
    for period_id, is_completed, n in counts.all():
        assigned[period_id] = assigned.get(period_id, 0) + n
        if is_completed:
            completed[period_id] = completed.get(period_id, 0) + n

    return [
        AssessmentPeriodSummary(
            **PeriodResponse.model_validate(p).model_dump(),
            assigned_count=assigned.get(p.id, 0),
            completed_count=completed.get(p.id, 0),
        )
        for p in periods
    ]


@router.get("/periods/pin", response_model=List[PeriodResponse])
async def list_pin_periods(
    active: bool = False,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    model = PeriodKind.PIN.model
    query = select(model).order_by(model.year.desc(), model.month.desc(), model.id.desc())
    if active:
        query = query.where(model.is_active.is_(True))
    return (await db.execute(query)).scalars().all()


@router.post("/periods/{kind}", response_model=PeriodResponse)
async def create_period(
    kind: PeriodKind,
    period_in: PeriodCreate,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    """Create a period and make it the active one of its kind."""
    if kind is PeriodKind.ASSESSMENT and (period_in.month is None or period_in.year is None):
        raise HTTPException(400, "month and year are required for assessment periods")

    period = kind.model(
        month=period_in.month,
        year=period_in.year,
        start_date=period_in.start_date,
        end_date=period_in.end_date,
        is_active=False,
        is_completed=False,
    )
    await activate_period(db, kind, period)
    await db.commit()
    await db.refresh(period)
    return period


@router.patch("/periods/{kind}/{period_id}", response_model=PeriodResponse)
async def update_period(
    kind: PeriodKind,
    period_id: int,
    period_in: PeriodUpdate,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    period = await _get_period(db, kind, period_id)
    updates = period_in.model_dump(exclude_unset=True)
    activate = updates.pop("is_active", None)

    for field, value in updates.items():
        setattr(period, field, value)
    if period.start_date > period.end_date:
        await db.rollback()
        raise HTTPException(400, "end_date must not be before start_date")

    if activate:
        await activate_period(db, kind, period)
    elif activate is False:
        period.is_active = False

    await db.commit()
    await db.refresh(period)
    return period


@router.post("/periods/{kind}/{period_id}/activate", response_model=PeriodResponse)
async def activate(
    kind: PeriodKind,
    period_id: int,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    period = await _get_period(db, kind, period_id)
    await activate_period(db, kind, period)
    await db.commit()
    await db.refresh(period)
    return period


@router.delete("/periods/{kind}/{period_id}")
async def delete_period(
    kind: PeriodKind,
    period_id: int,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    period = await _get_period(db, kind, period_id)
    try:
        if kind is PeriodKind.ASSESSMENT:
            assignment_ids = select(AssessmentAssignment.id).where(AssessmentAssignment.period_id == period_id)
            await db.execute(delete(FeedbackResponse).where(FeedbackResponse.assignment_id.in_(assignment_ids)))
            await db.execute(delete(AssessmentAssignment).where(AssessmentAssignment.period_id == period_id))
        await db.delete(period)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Admin %s deleted %s period %s", admin.id, kind.value, period_id)
    return {"success": True}


@router.post("/periods/pin/{period_id}/reset", response_model=PinPeriodResetResponse)
async def reset_pin_period_route(
    period_id: int,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    pins_deleted, allowances_reset = await reset_pin_period(db, period_id)
    return PinPeriodResetResponse(pins_deleted=pins_deleted, allowances_reset=allowances_reset)


# ── Triwulan ──────────────────────────────────────────────

@router.get("/triwulan/periods", response_model=List[TriwulanPeriodResponse])
async def list_triwulan_periods(
    active: bool = False,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    return await triwulan_service.list_triwulan_periods(db, active_only=active)


@router.post("/triwulan/periods", response_model=TriwulanPeriodResponse)
async def create_triwulan_period(
    period_in: TriwulanPeriodCreate,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    """Create a quarter and the monthly assessment periods it still lacks."""
    return await triwulan_service.create_triwulan_period(db, period_in)


@router.patch("/triwulan/periods/{period_id}", response_model=TriwulanPeriodResponse)
async def update_triwulan_period(
    period_id: int,
    period_in: TriwulanPeriodUpdate,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    updates = period_in.model_dump(exclude_unset=True, exclude_none=True)
    return await triwulan_service.update_triwulan_period(db, period_id, updates)


@router.delete("/triwulan/periods/{period_id}")
async def delete_triwulan_period(
    period_id: int,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    await triwulan_service.delete_triwulan_period(db, period_id)
    logger.info("User %s deleted triwulan period %s", manager.id, period_id)
    return {"success": True}


@router.get("/triwulan/{period_id}/deficiencies", response_model=List[DeficiencyResponse])
async def list_deficiencies(
    period_id: int,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    await triwulan_service.get_triwulan_period(db, period_id)
    return await triwulan_service.list_deficiencies(db, period_id)


@router.post("/triwulan/{period_id}/deficiencies")
async def upsert_deficiencies(
    period_id: int,
    deficiencies_in: DeficiencyUpsert,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    saved = await triwulan_service.upsert_deficiencies(db, period_id, deficiencies_in.rows, manager.id)
    return {"success": True, "saved": saved}
