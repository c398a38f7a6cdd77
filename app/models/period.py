# app/models/period.py
from datetime import date
from sqlalchemy import Column, Integer, Boolean, Date, DateTime, func
from app.database import Base


class PeriodColumns:
    """Columns shared by assessment periods and pin periods."""

    id = Column(Integer, primary_key=True, index=True)
    month = Column(Integer, nullable=True)  # 1-12
    year = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)  # inclusive
    is_active = Column(Boolean, default=False, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class AssessmentPeriod(PeriodColumns, Base):
    __tablename__ = "assessment_periods"


class PinPeriod(PeriodColumns, Base):
    __tablename__ = "pin_periods"
