from pydantic import BaseModel, EmailStr, Field
from typing import Literal, Optional

RoleName = Literal["admin", "supervisor", "user"]

class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=100)
    password: str = Field(..., min_length=8, max_length=72)
    role: RoleName = "user"
    position: Optional[str] = None
    department: Optional[str] = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class RefreshRequest(BaseModel):
    refresh_token: str

class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=72)

class RoleUpdate(BaseModel):
    role: RoleName

class UserResponse(BaseModel):
    id: int
    email: EmailStr
    is_active: bool
    name: str | None
    role: str | None
    position: Optional[str] = None
    department: Optional[str] = None

    model_config = {"from_attributes": True}

class MyRoleResponse(BaseModel):
    user_id: int
    role: RoleName

class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str
    user: UserResponse
