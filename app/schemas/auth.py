"""Auth schemas."""
from pydantic import EmailStr, Field

from app.models.user import UserRole
from app.schemas.common import APIModel, UTCDateTime


class UserCreate(APIModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)


class UserLogin(APIModel):
    email: EmailStr
    password: str


class UserResponse(APIModel):
    id: str
    email: str
    name: str
    role: UserRole
    created_at: UTCDateTime | None = None


class Token(APIModel):
    token: str
    token_type: str = "bearer"
    user: UserResponse
