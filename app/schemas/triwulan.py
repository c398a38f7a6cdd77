from pydantic import BaseModel, Field, model_validator
from datetime import date, datetime
from typing import Dict, List, Optional

# Criteria on the quarterly rating form, each scored 1-5
RATING_CRITERIA = 13
MAX_CRITERION_SCORE = 5

class TriwulanPeriodCreate(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    quarter: int = Field(..., ge=1, le=4)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_range(self):
        if self.start_date > self.end_date:
            raise ValueError("end_date must not be before start_date")
        return self

class TriwulanPeriodUpdate(BaseModel):
    year: Optional[int] = Field(None, ge=2000, le=2100)
    quarter: Optional[int] = Field(None, ge=1, le=4)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None

class TriwulanPeriodResponse(BaseModel):
    id: int
    code: str
    year: int
    quarter: int
    start_date: date
    end_date: date
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

class DeficiencyItem(BaseModel):
    user_id: int
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)
    deficiency_hours: float = Field(..., ge=0)

class DeficiencyUpsert(BaseModel):
    rows: List[DeficiencyItem]

class DeficiencyResponse(DeficiencyItem):
    period_id: int
    filled_by: Optional[int] = None

    model_config = {"from_attributes": True}

class CandidateItem(BaseModel):
    user_id: int
    name: Optional[str]
    position: Optional[str] = None
    department: Optional[str] = None

class VoteRequest(BaseModel):
    candidate_ids: List[int] = Field(..., min_length=1)

class VotesResponse(BaseModel):
    votes: List[int]

class VoteCompletionResponse(BaseModel):
    completed: bool

class ParticipationStatus(BaseModel):
    required_count: int
    completed_count: int
    completed_user_ids: List[int]

class VoteTally(BaseModel):
    candidate_id: int
    name: Optional[str]
    vote_count: int
    rank: int

class RatingRequest(BaseModel):
    candidate_id: int
    scores: List[float] = Field(..., min_length=RATING_CRITERIA, max_length=RATING_CRITERIA)

    @model_validator(mode="after")
    def check_scores(self):
        if any(not 1 <= s <= MAX_CRITERION_SCORE for s in self.scores):
            raise ValueError(f"scores must be between 1 and {MAX_CRITERION_SCORE}")
        return self

class RatingScoresResponse(BaseModel):
    scores: Optional[List[float]]

class RatingMapResponse(BaseModel):
    map: Dict[int, List[float]]

class CandidateScore(BaseModel):
    candidate_id: int
    total_score: float
    num_raters: int
    score_percent: float

class WinnerRequest(BaseModel):
    winner_id: int
    total_score: Optional[float] = None

class WinnerResponse(BaseModel):
    period_id: int
    winner_id: int
    total_score: Optional[float] = None

    model_config = {"from_attributes": True}
