from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, PlainSerializer

# Decimal columns go out as JSON numbers instead of strings
Money = Annotated[Decimal, PlainSerializer(lambda v: float(v) if v is not None else None, return_type=float, when_used="json")]


class CompanyBrief(BaseModel):
    id: int
    name: str
    code: str

    class Config:
        from_attributes = True


class ProductBrief(BaseModel):
    id: int
    sku: str
    name: str
    unit: Optional[str] = None
    units_per_box: Optional[Money] = None

    class Config:
        from_attributes = True


class CustomerBrief(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True
