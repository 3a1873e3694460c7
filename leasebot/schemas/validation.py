from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from leasebot.database.models import BillingCycle


class InviteCodeInput(BaseModel):
    code: str = Field(min_length=6, max_length=6)

    @field_validator('code', mode='before')
    def normalize(cls, v):
        if v is None:
            return ""
        return str(v).strip().upper()


class RentAmountModel(BaseModel):
    amount: Decimal = Field(ge=0, description="Rent per billing cycle")

    @field_validator('amount', mode='before')
    def parse_amount(cls, v):
        if isinstance(v, str):
            v = v.replace(',', '').replace(' ', '')
        return v


class BillingCycleModel(BaseModel):
    cycle: BillingCycle

    @field_validator('cycle', mode='before')
    def lower(cls, v):
        return str(v).strip().lower()


class UnitNameModel(BaseModel):
    name: str = Field(min_length=1, max_length=64)

    @field_validator('name', mode='before')
    def strip(cls, v):
        return str(v or "").strip()


class PropertyNameModel(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    address: str = Field(default="", max_length=256)

    @field_validator('name', 'address', mode='before')
    def strip(cls, v):
        return str(v or "").strip()


class ManualTenantModel(BaseModel):
    """Ghost tenant entered by the landlord: a name, an email, or both."""
    name: str = ""
    email: Optional[str] = Field(default=None, pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

    @field_validator('name', mode='before')
    def strip_name(cls, v):
        return str(v or "").strip()

    @field_validator('email', mode='before')
    def strip_email(cls, v):
        v = str(v or "").strip()
        return v or None

    @model_validator(mode='after')
    def name_or_email(self):
        if not self.name and not self.email:
            raise ValueError("Enter at least a name or email")
        return self
