from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from ceramisys.schemas.common import CompanyBrief


class LoginRequest(BaseModel):
    username: str
    password: str


class RoleRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    permissions: List[str] = []

    class Config:
        from_attributes = True


class UserBase(BaseModel):
    username: str = Field(..., min_length=3)
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    role_id: int
    company_id: int
    is_system_user: bool = False
    is_active: bool = True


class UserCreate(UserBase):
    password: str = Field(..., min_length=6)


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    role_id: Optional[int] = None
    company_id: Optional[int] = None
    is_system_user: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=6)
    is_active: Optional[bool] = None


class UserRead(BaseModel):
    id: int
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role_id: int
    role_name: Optional[str] = None
    permissions: List[str] = []
    company_id: int
    company: Optional[CompanyBrief] = None
    is_system_user: bool
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserRead
