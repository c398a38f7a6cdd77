from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import List, Optional
from app.data.aspects import ASPECT_IDS

MAX_RATING = 10

class ResponseItem(BaseModel):
    aspect: str
    indicator: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=MAX_RATING)
    comment: Optional[str] = None

    @field_validator("aspect")
    @classmethod
    def known_aspect(cls, value: str) -> str:
        if value not in ASPECT_IDS:
            raise ValueError(f"Unknown aspect '{value}'")
        return value

class SubmissionRequest(BaseModel):
    # Regular users submit against a persisted assignment; supervisors name the assessee.
    assignment_id: Optional[int] = None
    assessee_id: Optional[int] = None
    responses: List[ResponseItem]

class SubmissionResponse(BaseModel):
    success: bool = True
    assignment_id: int

class AssesseeBrief(BaseModel):
    id: int
    name: Optional[str]
    email: str
    position: Optional[str] = None
    department: Optional[str] = None

    model_config = {"from_attributes": True}

class AssignmentItem(BaseModel):
    # Synthetic supervisor entries carry id=None until a submission creates the row.
    id: Optional[int]
    period_id: int
    assessor_id: int
    assessee_id: int
    is_completed: Optional[bool]
    completed_at: Optional[datetime] = None
    assessee: Optional[AssesseeBrief] = None

class FeedbackResponseItem(BaseModel):
    id: int
    aspect: str
    indicator: str
    rating: int
    comment: Optional[str]

    model_config = {"from_attributes": True}
