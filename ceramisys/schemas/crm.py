from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ceramisys.models.crm import AccountTransactionType, AccountReferenceType
from ceramisys.schemas.common import Money


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    note: Optional[str] = None


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None
    note: Optional[str] = None


class CustomerRead(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AccountEntryCreate(BaseModel):
    transaction_type: AccountTransactionType
    amount: Decimal = Field(..., gt=0)
    reference_type: AccountReferenceType = AccountReferenceType.OPENING_BALANCE
    reference_id: Optional[int] = None
    description: Optional[str] = None


class AccountEntryRead(BaseModel):
    id: int
    transaction_type: AccountTransactionType
    amount: Money
    balance: Money
    reference_type: AccountReferenceType
    reference_id: Optional[int] = None
    description: Optional[str] = None
    transaction_date: Optional[datetime] = None

    class Config:
        from_attributes = True
