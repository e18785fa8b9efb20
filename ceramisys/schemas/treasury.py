from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ceramisys.models.treasury import TreasuryType, TransactionType, TransactionSource
from ceramisys.schemas.common import Money


class TreasuryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    type: TreasuryType = TreasuryType.COMPANY
    company_id: Optional[int] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    opening_balance: Decimal = Field(Decimal(0), ge=0)


class TreasuryMovement(BaseModel):
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = None


class TreasuryRead(BaseModel):
    id: int
    name: str
    type: TreasuryType
    company_id: Optional[int] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    balance: Money
    is_active: bool

    class Config:
        from_attributes = True


class TreasuryTransactionRead(BaseModel):
    id: int
    treasury_id: int
    type: TransactionType
    source: TransactionSource
    amount: Money
    balance_before: Money
    balance_after: Money
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    description: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
