from pydantic import BaseModel
from typing import List, Optional
from app.schemas.period import PeriodResponse

class AspectResult(BaseModel):
    aspect: str
    supervisor_average: Optional[float]
    peer_average: Optional[float]
    final_score: Optional[float]
    total_feedback: int  # distinct assessors for this aspect
    has_supervisor_assessment: bool
    has_peer_assessment: bool

class WeightedResults(BaseModel):
    aspect_results: List[AspectResult]
    overall_score: float
    total_feedback: int
    supervisor_feedback_count: int
    peer_feedback_count: int
    has_supervisor_assessment: bool
    has_peer_assessment: bool
    period: Optional[PeriodResponse] = None

class TeamPerformance(BaseModel):
    average_rating: float
    total_feedback: int
    total_employees: int
    max_assignments: int
    completed_assessments: int
    pending_assessments: int
    period_progress: float
    period: PeriodResponse

class TeamPerformanceResponse(BaseModel):
    performance: Optional[TeamPerformance]
