# app/services/periods.py
"""
Period resolution shared by the pin ledger and the assessment services.

A configured period covers ``[start_date, end_date]`` inclusive; as a
timestamp window that is ``[start_date, end_date + 1 day)``. When no pin
period is configured, pin operations fall back to the calendar month.
Assessment operations never fall back.
"""
import enum
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, Optional, Tuple, Type, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NoActivePeriod
from app.models.period import AssessmentPeriod, PinPeriod

logger = logging.getLogger(__name__)

Period = Union[AssessmentPeriod, PinPeriod]


class PeriodKind(str, enum.Enum):
    ASSESSMENT = "assessment"
    PIN = "pin"

    @property
    def model(self) -> Type[Period]:
        return AssessmentPeriod if self is PeriodKind.ASSESSMENT else PinPeriod


@dataclass(frozen=True)
class PeriodWindow:
    start: datetime
    end_exclusive: datetime
    month: int
    year: int
    period: Optional[Period] = None

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts < self.end_exclusive

    @property
    def is_fallback(self) -> bool:
        return self.period is None


def utcnow() -> datetime:
    """Naive UTC timestamp, the form pins are stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def day_start(day: date) -> datetime:
    return datetime.combine(day, time.min)


def week_number(ts: Union[date, datetime]) -> int:
    """Monday-based week index of ``ts`` within its year.

    Not ISO-8601: a year starting on a Monday puts Jan 1 in week 0.
    """
    day = ts.date() if isinstance(ts, datetime) else ts
    start_of_year = date(day.year, 1, 1)
    day_of_year = (day - start_of_year).days + 1
    start_day = (start_of_year.weekday() + 1) % 7  # Sunday=0 .. Saturday=6
    adjusted_start_day = 7 if start_day == 0 else start_day
    return math.ceil((day_of_year + adjusted_start_day - 2) / 7)


def months_between(start: date, end: date) -> Iterator[Tuple[int, int]]:
    """(year, month) of every calendar month touched by ``start``..``end``."""
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        yield year, month
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)


def calendar_month_window(year: int, month: int) -> PeriodWindow:
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return PeriodWindow(start=day_start(start), end_exclusive=day_start(end), month=month, year=year)


def window_for_period(period: Period) -> PeriodWindow:
    return PeriodWindow(
        start=day_start(period.start_date),
        end_exclusive=day_start(period.end_date + timedelta(days=1)),
        month=period.month or period.start_date.month,
        year=period.year or period.start_date.year,
        period=period,
    )


def window_for_range(start: date, end: date) -> PeriodWindow:
    return PeriodWindow(
        start=day_start(start),
        end_exclusive=day_start(end + timedelta(days=1)),
        month=start.month,
        year=start.year,
    )


async def get_active_period(db: AsyncSession, kind: PeriodKind) -> Optional[Period]:
    model = kind.model
    result = await db.execute(
        select(model).where(model.is_active.is_(True)).order_by(model.id.desc()).limit(1)
    )
    return result.scalar_one_or_none()


async def resolve_active_window(
    db: AsyncSession, kind: PeriodKind, now: Optional[datetime] = None
) -> PeriodWindow:
    period = await get_active_period(db, kind)
    if period is not None:
        return window_for_period(period)
    if kind is PeriodKind.ASSESSMENT:
        raise NoActivePeriod("No active assessment period")
    now = now or utcnow()
    return calendar_month_window(now.year, now.month)


async def resolve_window_for_month(
    db: AsyncSession, kind: PeriodKind, month: int, year: int
) -> PeriodWindow:
    model = kind.model
    result = await db.execute(
        select(model).where(model.month == month, model.year == year).order_by(model.id.desc()).limit(1)
    )
    period = result.scalar_one_or_none()
    if period is not None:
        return window_for_period(period)
    return calendar_month_window(year, month)


async def find_covering_period(db: AsyncSession, kind: PeriodKind, day: date) -> Optional[Period]:
    model = kind.model
    result = await db.execute(
        select(model)
        .where(model.start_date <= day, model.end_date >= day)
        .order_by(model.is_active.desc(), model.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def activate_period(db: AsyncSession, kind: PeriodKind, period: Period) -> Period:
    """Make ``period`` the only active period of its kind. Caller commits."""
    model = kind.model
    if period.id is None:
        db.add(period)
        await db.flush()
    await db.execute(
        update(model).where(model.is_active.is_(True), model.id != period.id).values(is_active=False)
    )
    period.is_active = True
    logger.info("Activated %s period %s (%s..%s)", kind.value, period.id, period.start_date, period.end_date)
    return period
