from pydantic import BaseModel, Field, model_validator
from datetime import date, datetime
from typing import Optional

class PeriodCreate(BaseModel):
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = Field(None, ge=2000, le=2100)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_range(self):
        if self.start_date > self.end_date:
            raise ValueError("end_date must not be before start_date")
        return self

class PeriodUpdate(BaseModel):
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = Field(None, ge=2000, le=2100)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None
    is_completed: Optional[bool] = None

class PeriodResponse(BaseModel):
    id: int
    month: Optional[int]
    year: Optional[int]
    start_date: date
    end_date: date
    is_active: bool
    is_completed: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

class AssessmentPeriodSummary(PeriodResponse):
    assigned_count: int = 0
    completed_count: int = 0
