# app/services/pins.py
"""
Pin allowance ledger.

Every pin given inside a period moves one unit of the giver's monthly
allowance from ``pins_remaining`` to ``pins_used``; cancelling moves it
back. The pin row and the allowance row always change in the same
transaction.
"""
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional, Set, Tuple

from sqlalchemy import select, update, delete, func, case, and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.core.errors import AllowanceExhausted, BadRequest, Forbidden, NoActivePeriod, NotFound, OutOfPeriodRange
from app.core.roles import RoleDirectory
from app.models.pin import EmployeePin, MonthlyPinAllowance
from app.models.user import User
from app.schemas.pin import AllowanceState, AllowanceSummary, PinHistoryItem, PinStats, PinUserBrief, RankingItem
from app.services.periods import (
    Period,
    PeriodKind,
    PeriodWindow,
    calendar_month_window,
    day_start,
    find_covering_period,
    get_active_period,
    months_between,
    resolve_active_window,
    resolve_window_for_month,
    utcnow,
    week_number,
    window_for_period,
    window_for_range,
)

logger = logging.getLogger(__name__)

# Pins per user per period. Every allowance row is seeded from this value.
PIN_QUOTA = 4


def ledger_month_year(period: Optional[Period], now: datetime) -> Tuple[int, int]:
    if period is None:
        return now.month, now.year
    return period.month or now.month, period.year or now.year


async def count_pins_given(db: AsyncSession, giver_id: int, window: PeriodWindow) -> int:
    result = await db.execute(
        select(func.count(EmployeePin.id))
        .where(EmployeePin.giver_id == giver_id)
        .where(EmployeePin.given_at >= window.start)
        .where(EmployeePin.given_at < window.end_exclusive)
    )
    return result.scalar_one()


def _allowance_query(user_id: int, month: int, year: int):
    return (
        select(MonthlyPinAllowance)
        .where(MonthlyPinAllowance.user_id == user_id)
        .where(MonthlyPinAllowance.month == month)
        .where(MonthlyPinAllowance.year == year)
        .with_for_update()
    )


async def _get_or_create_allowance(
    db: AsyncSession, user_id: int, month: int, year: int, used: int = 0
) -> MonthlyPinAllowance:
    query = _allowance_query(user_id, month, year)
    allowance = (await db.execute(query)).scalar_one_or_none()
    if allowance is not None:
        return allowance

    allowance = MonthlyPinAllowance(
        user_id=user_id,
        month=month,
        year=year,
        pins_remaining=max(0, PIN_QUOTA - used),
        pins_used=used,
    )
    try:
        async with db.begin_nested():
            db.add(allowance)
    except IntegrityError:
        # Created concurrently by another request for the same user/month
        allowance = (await db.execute(query)).scalar_one()
    return allowance


async def give_pin(
    db: AsyncSession, giver_id: int, receiver_id: int, now: Optional[datetime] = None
) -> AllowanceState:
    now = now or utcnow()

    period = await get_active_period(db, PeriodKind.PIN)
    if period is None:
        raise NoActivePeriod("No active pin period")
    if not period.covers(now.date()):
        raise OutOfPeriodRange()

    month, year = ledger_month_year(period, now)
    window = window_for_period(period)
    try:
        allowance = await _get_or_create_allowance(db, giver_id, month, year)

        # Re-seed the locked row from the pins actually given before spending
        used = await count_pins_given(db, giver_id, window)
        await db.execute(
            update(MonthlyPinAllowance)
            .where(MonthlyPinAllowance.id == allowance.id)
            .values(pins_remaining=max(0, PIN_QUOTA - used), pins_used=used)
            .execution_options(synchronize_session=False)
        )

        # Conditional decrement: the row lock and the WHERE clause together
        # keep two concurrent gives from both spending the last pin.
        result = await db.execute(
            update(MonthlyPinAllowance)
            .where(MonthlyPinAllowance.id == allowance.id)
            .where(MonthlyPinAllowance.pins_remaining > 0)
            .values(
                pins_remaining=MonthlyPinAllowance.pins_remaining - 1,
                pins_used=MonthlyPinAllowance.pins_used + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise AllowanceExhausted()

        db.add(EmployeePin(
            giver_id=giver_id,
            receiver_id=receiver_id,
            given_at=now,
            week_number=week_number(now),
            month=month,
            year=year,
        ))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(allowance)
    logger.info(
        "User %s gave a pin to %s (%s/%s, %s remaining)",
        giver_id, receiver_id, month, year, allowance.pins_remaining,
    )
    return AllowanceState(pins_remaining=allowance.pins_remaining, pins_used=allowance.pins_used)


async def cancel_pin(db: AsyncSession, pin_id: int, requester_id: int) -> int:
    """Delete a pin given by ``requester_id`` and credit the allowance back."""
    pin = await db.get(EmployeePin, pin_id)
    if pin is None:
        raise NotFound("Pin not found")
    if pin.giver_id != requester_id:
        logger.warning("User %s tried to cancel pin %s given by %s", requester_id, pin_id, pin.giver_id)
        raise Forbidden()

    given_at = pin.given_at
    period = await find_covering_period(db, PeriodKind.PIN, given_at.date())
    if period is not None:
        month = period.month or given_at.month
        year = period.year or given_at.year
        window = window_for_period(period)
    else:
        month, year = given_at.month, given_at.year
        window = calendar_month_window(year, month)

    try:
        await db.delete(pin)
        await db.flush()

        allowance = (await db.execute(_allowance_query(requester_id, month, year))).scalar_one_or_none()
        if allowance is None:
            # No stored counter yet: rebuild it from the pins still in the window
            used = await count_pins_given(db, requester_id, window)
            allowance = await _get_or_create_allowance(db, requester_id, month, year, used=used)
        else:
            await db.execute(
                update(MonthlyPinAllowance)
                .where(MonthlyPinAllowance.id == allowance.id)
                .values(
                    pins_remaining=MonthlyPinAllowance.pins_remaining + 1,
                    pins_used=case(
                        (MonthlyPinAllowance.pins_used > 0, MonthlyPinAllowance.pins_used - 1),
                        else_=0,
                    ),
                )
                .execution_options(synchronize_session=False)
            )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(allowance)
    logger.info("User %s cancelled pin %s (%s/%s, %s remaining)", requester_id, pin_id, month, year, allowance.pins_remaining)
    return allowance.pins_remaining


async def release_pins_received(db: AsyncSession, receiver_id: int) -> int:
    """
    Credit every giver for the pins ``receiver_id`` received.

    Runs inside the caller's transaction, before the pins are deleted.
    Returns the number of pins credited back.
    """
    pin_count = func.count(EmployeePin.id)
    result = await db.execute(
        select(EmployeePin.giver_id, EmployeePin.month, EmployeePin.year, pin_count)
        .where(EmployeePin.receiver_id == receiver_id)
        .where(EmployeePin.giver_id != receiver_id)
        .group_by(EmployeePin.giver_id, EmployeePin.month, EmployeePin.year)
    )
    credited = 0
    for giver_id, month, year, n in result.all():
        await db.execute(
            update(MonthlyPinAllowance)
            .where(MonthlyPinAllowance.user_id == giver_id)
            .where(MonthlyPinAllowance.month == month)
            .where(MonthlyPinAllowance.year == year)
            .values(
                pins_remaining=case(
                    (MonthlyPinAllowance.pins_remaining + n > PIN_QUOTA, PIN_QUOTA),
                    else_=MonthlyPinAllowance.pins_remaining + n,
                ),
                pins_used=case(
                    (MonthlyPinAllowance.pins_used > n, MonthlyPinAllowance.pins_used - n),
                    else_=0,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        credited += n
    if credited:
        logger.info("Credited %s pins back to the givers of user %s", credited, receiver_id)
    return credited


async def get_allowance(db: AsyncSession, user_id: int, now: Optional[datetime] = None) -> AllowanceSummary:
    """Allowance derived from the pins actually given in the current window."""
    now = now or utcnow()
    window = await resolve_active_window(db, PeriodKind.PIN, now)
    month, year = ledger_month_year(window.period, now)

    used = await count_pins_given(db, user_id, window)
    remaining = max(0, PIN_QUOTA - used)

    stored = (
        await db.execute(
            select(MonthlyPinAllowance)
            .where(MonthlyPinAllowance.user_id == user_id)
            .where(MonthlyPinAllowance.month == month)
            .where(MonthlyPinAllowance.year == year)
        )
    ).scalar_one_or_none()
    if stored is not None and (stored.pins_used, stored.pins_remaining) != (used, remaining):
        logger.warning(
            "Allowance drift for user %s in %s/%s: stored %s/%s, derived %s/%s",
            user_id, month, year, stored.pins_remaining, stored.pins_used, remaining, used,
        )

    return AllowanceSummary(user_id=user_id, month=month, year=year, pins_remaining=remaining, pins_used=used)


async def resolve_history_window(
    db: AsyncSession,
    month: Optional[int] = None,
    year: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> PeriodWindow:
    if start and end:
        if start > end:
            raise BadRequest("start must not be after end")
        return window_for_range(start, end)
    if month and year:
        return await resolve_window_for_month(db, PeriodKind.PIN, month, year)
    return await resolve_active_window(db, PeriodKind.PIN, now)


async def list_pin_history(
    db: AsyncSession, user_id: int, window: PeriodWindow, receiver_id: Optional[int] = None
) -> List[PinHistoryItem]:
    """Pins given by ``user_id``, or received by ``receiver_id`` when given."""
    giver = aliased(User)
    receiver = aliased(User)
    query = (
        select(EmployeePin, giver, receiver)
        .join(giver, giver.id == EmployeePin.giver_id)
        .join(receiver, receiver.id == EmployeePin.receiver_id)
        .where(EmployeePin.given_at >= window.start)
        .where(EmployeePin.given_at < window.end_exclusive)
        .order_by(EmployeePin.given_at.desc(), EmployeePin.id.desc())
    )
    if receiver_id is not None:
        query = query.where(EmployeePin.receiver_id == receiver_id)
    else:
        query = query.where(EmployeePin.giver_id == user_id)

    result = await db.execute(query)
    return [
        PinHistoryItem(
            id=pin.id,
            given_at=pin.given_at,
            week_number=pin.week_number,
            giver_id=pin.giver_id,
            receiver_id=pin.receiver_id,
            giver=PinUserBrief.model_validate(giver_user),
            receiver=PinUserBrief.model_validate(receiver_user),
        )
        for pin, giver_user, receiver_user in result.all()
    ]


async def parse_period_filter(
    db: AsyncSession, period_filter: Optional[str], now: Optional[datetime] = None
) -> Optional[PeriodWindow]:
    """Rankings filter: ``active``, ``month:YYYY-MM`` or ``range:YYYY-MM-DD,YYYY-MM-DD``."""
    if not period_filter:
        return None
    try:
        if period_filter == "active":
            return await resolve_active_window(db, PeriodKind.PIN, now)
        if period_filter.startswith("month:"):
            year, month = (int(part) for part in period_filter[len("month:"):].split("-"))
            if not 1 <= month <= 12:
                raise ValueError(month)
            return await resolve_window_for_month(db, PeriodKind.PIN, month, year)
        if period_filter.startswith("range:"):
            start, end = period_filter[len("range:"):].split(",")
            return window_for_range(date.fromisoformat(start), date.fromisoformat(end))
    except ValueError:
        raise BadRequest(f"Invalid period filter '{period_filter}'")
    raise BadRequest(f"Invalid period filter '{period_filter}'")


async def pin_rankings(
    db: AsyncSession, roles: RoleDirectory, window: Optional[PeriodWindow] = None, limit: int = 10
) -> List[RankingItem]:
    limit = max(1, min(100, limit))
    pin_count = func.count(EmployeePin.id).label("pin_count")
    query = (
        select(EmployeePin.receiver_id, User.name, pin_count)
        .join(User, User.id == EmployeePin.receiver_id)
        .group_by(EmployeePin.receiver_id, User.name)
        .order_by(pin_count.desc(), EmployeePin.receiver_id)
    )
    if roles.admin_ids:
        query = query.where(EmployeePin.receiver_id.notin_(sorted(roles.admin_ids)))
    if window is not None:
        query = query.where(EmployeePin.given_at >= window.start).where(EmployeePin.given_at < window.end_exclusive)

    result = await db.execute(query.limit(limit))
    return [
        RankingItem(user_id=user_id, name=name, pin_count=count, rank=idx + 1)
        for idx, (user_id, name, count) in enumerate(result.all())
    ]


async def _ranked_receivers(db: AsyncSession, *conditions) -> List[RankingItem]:
    pin_count = func.count(EmployeePin.id).label("pin_count")
    result = await db.execute(
        select(EmployeePin.receiver_id, User.name, pin_count)
        .join(User, User.id == EmployeePin.receiver_id)
        .where(*conditions)
        .group_by(EmployeePin.receiver_id, User.name)
        .order_by(pin_count.desc(), User.name, EmployeePin.receiver_id)
    )
    return [
        RankingItem(user_id=user_id, name=name, pin_count=count, rank=idx + 1)
        for idx, (user_id, name, count) in enumerate(result.all())
    ]


async def weekly_rankings(db: AsyncSession, now: Optional[datetime] = None) -> List[RankingItem]:
    """Receivers of pins given in the current week, ties broken by name."""
    now = now or utcnow()
    year_start = day_start(date(now.year, 1, 1))
    return await _ranked_receivers(
        db,
        EmployeePin.week_number == week_number(now),
        EmployeePin.given_at >= year_start,
        EmployeePin.given_at < day_start(date(now.year + 1, 1, 1)),
    )


async def monthly_rankings(db: AsyncSession, month: int, year: int) -> List[RankingItem]:
    """Receivers of pins in the pin period set up for ``month``/``year``; empty without one."""
    window = await resolve_window_for_month(db, PeriodKind.PIN, month, year)
    if window.is_fallback:
        return []
    return await _ranked_receivers(
        db, EmployeePin.given_at >= window.start, EmployeePin.given_at < window.end_exclusive
    )


async def list_participants(db: AsyncSession, roles: RoleDirectory) -> List[User]:
    """Everyone who can receive a pin."""
    query = select(User).where(User.is_active.is_(True)).order_by(User.name, User.id)
    if roles.admin_ids:
        query = query.where(User.id.notin_(sorted(roles.admin_ids)))
    return list((await db.execute(query)).scalars().all())


async def pin_stats(db: AsyncSession, now: Optional[datetime] = None) -> PinStats:
    now = now or utcnow()
    month = calendar_month_window(now.year, now.month)
    week_start = day_start(now.date() - timedelta(days=now.weekday()))  # Monday
    week_end = week_start + timedelta(days=7)

    async def _count(*conditions) -> int:
        result = await db.execute(select(func.count(EmployeePin.id)).where(*conditions))
        return result.scalar_one()

    return PinStats(
        total_pins=await _count(),
        this_week_pins=await _count(EmployeePin.given_at >= week_start, EmployeePin.given_at < week_end),
        this_month_pins=await _count(
            EmployeePin.given_at >= month.start, EmployeePin.given_at < month.end_exclusive
        ),
    )


def ledger_keys(period: Period) -> Set[Tuple[int, int]]:
    """Every (month, year) allowance key a give inside ``period`` can land on."""
    return {
        (period.month or month, period.year or year)
        for year, month in months_between(period.start_date, period.end_date)
    }


async def reset_pin_period(db: AsyncSession, period_id: int) -> Tuple[int, int]:
    """Delete every pin in the period window and reset the allowances it keyed."""
    period = await db.get(PeriodKind.PIN.model, period_id)
    if period is None:
        raise NotFound("Pin period not found")
    window = window_for_period(period)

    try:
        deleted = await db.execute(
            delete(EmployeePin)
            .where(EmployeePin.given_at >= window.start)
            .where(EmployeePin.given_at < window.end_exclusive)
            .execution_options(synchronize_session=False)
        )
        reset = await db.execute(
            update(MonthlyPinAllowance)
            .where(or_(*(
                and_(MonthlyPinAllowance.month == month, MonthlyPinAllowance.year == year)
                for month, year in sorted(ledger_keys(period))
            )))
            .values(pins_remaining=PIN_QUOTA, pins_used=0)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Reset pin period %s: %s pins deleted, %s allowances reset",
        period_id, deleted.rowcount, reset.rowcount,
    )
    return deleted.rowcount, reset.rowcount
