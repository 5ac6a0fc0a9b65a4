from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str
    user_id: int
    user_name: str
    user_role: str


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str
    role: str = Field(min_length=1, max_length=50)
    company_id: Optional[int] = None


class PinSetupRequest(BaseModel):
    pin: str = Field(pattern=r"^\d{4,8}$")
    current_password: str


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    company_id: int
    is_active: bool
    has_signature_pin: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            company_id=user.company_id,
            is_active=bool(user.is_active),
            has_signature_pin=user.signature_pin_hash is not None,
            created_at=user.created_at,
        )


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int
