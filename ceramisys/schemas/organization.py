from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class CompanyBase(BaseModel):
    name: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1, max_length=20)
    is_parent: bool = False
    parent_id: Optional[int] = None
    is_active: bool = True


class CompanyCreate(CompanyBase):
    pass


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    is_parent: Optional[bool] = None
    parent_id: Optional[int] = None
    is_active: Optional[bool] = None


class CompanySimple(BaseModel):
    id: int
    name: str
    code: str
    is_parent: bool
    is_active: bool

    class Config:
        from_attributes = True


class CompanyRead(CompanySimple):
    parent_id: Optional[int] = None
    parent: Optional[CompanySimple] = None
    children: List[CompanySimple] = []
    created_at: Optional[datetime] = None
