# app/models/triwulan.py
from sqlalchemy import (
    Column, Integer, Boolean, Date, DateTime, Numeric, Float, JSON, ForeignKey, UniqueConstraint, func
)
from app.database import Base


class TriwulanPeriod(Base):
    """A quarter in which employees vote for, then rate, the employee of the quarter."""

    __tablename__ = "triwulan_periods"

    id = Column(Integer, primary_key=True, index=True)
    year = Column(Integer, nullable=False)
    quarter = Column(Integer, nullable=False)  # 1-4
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)  # inclusive
    is_active = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("year", "quarter", name="uq_triwulan_year_quarter"),
    )

    @property
    def code(self) -> str:
        return f"{self.year}-Q{self.quarter}"

    def covers(self, day) -> bool:
        return self.start_date <= day <= self.end_date


class TriwulanDeficiency(Base):
    """Working-hour shortfall of one employee in one month of the quarter."""

    __tablename__ = "triwulan_monthly_deficiencies"

    id = Column(Integer, primary_key=True, index=True)
    period_id = Column(Integer, ForeignKey("triwulan_periods.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    deficiency_hours = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    filled_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("period_id", "user_id", "year", "month", name="uq_deficiency_period_user_month"),
    )


class TriwulanVote(Base):
    __tablename__ = "triwulan_votes"

    id = Column(Integer, primary_key=True, index=True)
    period_id = Column(Integer, ForeignKey("triwulan_periods.id"), nullable=False, index=True)
    voter_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    candidate_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("period_id", "voter_id", "candidate_id", name="uq_vote_period_voter_candidate"),
    )


class TriwulanVoteCompletion(Base):
    __tablename__ = "triwulan_vote_completion"

    id = Column(Integer, primary_key=True, index=True)
    period_id = Column(Integer, ForeignKey("triwulan_periods.id"), nullable=False, index=True)
    voter_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    completed_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("period_id", "voter_id", name="uq_vote_completion_period_voter"),
    )


class TriwulanRating(Base):
    __tablename__ = "triwulan_ratings"

    id = Column(Integer, primary_key=True, index=True)
    period_id = Column(Integer, ForeignKey("triwulan_periods.id"), nullable=False, index=True)
    rater_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    candidate_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    scores = Column(JSON, nullable=False)  # one score per rating criterion
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("period_id", "rater_id", "candidate_id", name="uq_rating_period_rater_candidate"),
    )


class TriwulanWinner(Base):
    __tablename__ = "triwulan_winners"

    id = Column(Integer, primary_key=True, index=True)
    period_id = Column(Integer, ForeignKey("triwulan_periods.id"), nullable=False, unique=True)
    winner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    total_score = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
