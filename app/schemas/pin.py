from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

class PinGiveRequest(BaseModel):
    receiver_id: int

class PinCancelRequest(BaseModel):
    pin_id: int

class AllowanceState(BaseModel):
    pins_remaining: int = Field(..., ge=0)
    pins_used: int = Field(..., ge=0)

class AllowanceSummary(AllowanceState):
    user_id: int
    month: int
    year: int

class GivePinResponse(BaseModel):
    success: bool = True
    allowance: AllowanceState

class CancelledAllowance(BaseModel):
    pins_remaining: int

class CancelPinResponse(BaseModel):
    success: bool = True
    allowance: CancelledAllowance

class PinUserBrief(BaseModel):
    id: int
    name: Optional[str]
    email: str

    model_config = {"from_attributes": True}

class PinHistoryItem(BaseModel):
    id: int
    given_at: datetime
    week_number: int
    giver_id: int
    receiver_id: int
    giver: Optional[PinUserBrief] = None
    receiver: Optional[PinUserBrief] = None

class PinHistoryResponse(BaseModel):
    pins: List[PinHistoryItem]

class RankingItem(BaseModel):
    user_id: int
    name: Optional[str]
    pin_count: int
    rank: int

class RankingResponse(BaseModel):
    success: bool = True
    rankings: List[RankingItem]

class PinStats(BaseModel):
    total_pins: int
    this_week_pins: int
    this_month_pins: int

class PinPeriodResetResponse(BaseModel):
    pins_deleted: int
    allowances_reset: int
