"""
One shape for "who lives where".

Units and tenancies both describe an occupancy but store it differently
(a unit has only its current occupant, a tenancy carries dates and a
lease status). Screens render OccupancyView and never the raw records.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict

from leasebot.database.models import Unit, Tenancy, UnitStatus, TenancyStatus


class OccupancyView(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str  # unit | tenancy
    landlord_id: int
    property_id: int
    unit_id: int
    unit_name: str = ""
    property_name: str = ""

    tenant_id: Optional[int] = None
    tenant_name: str = ""
    tenant_email: str = ""

    rent_amount: Decimal = Decimal("0")
    billing_cycle: str = "monthly"
    currency: Optional[str] = None

    # vacant | pending_approval | occupied | former
    status: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    tenancy_id: Optional[int] = None

    @property
    def is_ghost(self) -> bool:
        return self.tenant_id is None and bool(self.tenant_name or self.tenant_email)

    @property
    def display_tenant(self) -> str:
        return self.tenant_name or self.tenant_email or "-"

    @classmethod
    def from_unit(cls, unit: Unit, property_name: str = "", currency: Optional[str] = None) -> "OccupancyView":
        if unit.status == UnitStatus.pending_approval.value:
            tenant_id = unit.pending_tenant_id
            tenant_name = unit.pending_tenant_name or ""
            tenant_email = unit.pending_tenant_email or ""
            start_date = unit.pending_requested_at
        else:
            tenant_id = unit.tenant_id
            tenant_name = unit.tenant_name or ""
            tenant_email = unit.tenant_email or ""
            start_date = None

        return cls(
            source="unit",
            landlord_id=unit.landlord_id,
            property_id=unit.property_id,
            unit_id=unit.id,
            unit_name=unit.name or "",
            property_name=property_name,
            tenant_id=tenant_id,
            tenant_name=tenant_name,
            tenant_email=tenant_email,
            rent_amount=Decimal(str(unit.rent_amount or 0)),
            billing_cycle=unit.billing_cycle or "monthly",
            currency=currency,
            status=unit.status,
            start_date=start_date,
        )

    @classmethod
    def from_tenancy(cls, tenancy: Tenancy) -> "OccupancyView":
        status = UnitStatus.occupied.value
        if tenancy.status == TenancyStatus.former.value:
            status = TenancyStatus.former.value

        return cls(
            source="tenancy",
            landlord_id=tenancy.landlord_id,
            property_id=tenancy.property_id,
            unit_id=tenancy.unit_id,
            unit_name=tenancy.unit_name or "",
            property_name=tenancy.property_name or "",
            tenant_id=tenancy.tenant_id,
            tenant_name=tenancy.tenant_name or "",
            tenant_email=tenancy.tenant_email or "",
            rent_amount=Decimal(str(tenancy.rent_amount or 0)),
            billing_cycle=tenancy.billing_cycle or "monthly",
            currency=tenancy.currency,
            status=status,
            start_date=tenancy.start_date,
            end_date=tenancy.end_date,
            tenancy_id=tenancy.id,
        )
