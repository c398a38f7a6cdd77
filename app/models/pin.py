# app/models/pin.py
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, func
from app.database import Base

class EmployeePin(Base):
    __tablename__ = "employee_pins"

    id = Column(Integer, primary_key=True, index=True)
    giver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    given_at = Column(DateTime, nullable=False, index=True)  # naive UTC
    week_number = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class MonthlyPinAllowance(Base):
    __tablename__ = "monthly_pin_allowances"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    pins_remaining = Column(Integer, nullable=False)
    pins_used = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("user_id", "month", "year", name="uq_allowance_user_month_year"),
        CheckConstraint("pins_remaining >= 0", name="ck_allowance_remaining_non_negative"),
        CheckConstraint("pins_used >= 0", name="ck_allowance_used_non_negative"),
    )
