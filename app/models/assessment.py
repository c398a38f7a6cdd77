from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint, func
from app.database import Base

class AssessmentAssignment(Base):
    __tablename__ = "assessment_assignments"

    id = Column(Integer, primary_key=True, index=True)
    assessor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assessee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    period_id = Column(Integer, ForeignKey("assessment_periods.id"), nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("assessor_id", "assessee_id", "period_id", name="uq_assignment_pair_period"),
    )

class FeedbackResponse(Base):
    __tablename__ = "feedback_responses"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(
        Integer, ForeignKey("assessment_assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    aspect = Column(String, nullable=False)  # e.g. "kolaboratif"
    indicator = Column(Text, nullable=False)
    rating = Column(Integer, nullable=False)  # 1-10
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
