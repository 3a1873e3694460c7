import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from sqlalchemy import BigInteger, String, Boolean, ForeignKey, Integer, Numeric, DateTime, Text, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from leasebot.database.core import Base
from leasebot.utils.dates import utcnow

# Enums
class UserRole(str, enum.Enum):
    landlord = "landlord"
    tenant = "tenant"

class UnitStatus(str, enum.Enum):
    vacant = "vacant"
    pending_approval = "pending_approval"
    occupied = "occupied"

class BillingCycle(str, enum.Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"

class InviteCodeStatus(str, enum.Enum):
    active = "active"
    revoked = "revoked"

class InviteTokenStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    expired = "expired"

class TenancyStatus(str, enum.Enum):
    active = "active"
    former = "former"

class NotificationType(str, enum.Enum):
    unit_request = "unit_request"
    invite_accepted = "invite_accepted"
    lease_end = "lease_end"

class InvoiceStatus(str, enum.Enum):
    draft = "draft"
    sent = "sent"
    paid = "paid"
    overdue = "overdue"
    cancelled = "cancelled"

class ReminderAudience(str, enum.Enum):
    landlord = "landlord"
    tenant = "tenant"

class ReminderStatus(str, enum.Enum):
    pending = "pending"
    sent = "sent"


# 1 User (landlord or tenant account, authenticated by Telegram)
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tg_id: Mapped[Optional[int]] = mapped_column(BigInteger, unique=True, index=True, nullable=True)
    tg_username: Mapped[Optional[str]] = mapped_column(String)
    full_name: Mapped[str] = mapped_column(String, default="")
    email: Mapped[Optional[str]] = mapped_column(String)

    role: Mapped[UserRole] = mapped_column(String, default=UserRole.tenant.value)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    properties: Mapped[List["Property"]] = relationship(back_populates="landlord")


# 2 Property
class Property(Base):
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    landlord_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String)
    address: Mapped[str] = mapped_column(String, default="")
    currency: Mapped[str] = mapped_column(String(3), default="NGN")

    # Denormalized active invite code for fast lookup
    invite_code: Mapped[Optional[str]] = mapped_column(String(6), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    landlord: Mapped["User"] = relationship(back_populates="properties")
    units: Mapped[List["Unit"]] = relationship(back_populates="rental_property", cascade="all, delete-orphan")


# 3 Unit
class Unit(Base):
    __tablename__ = "units"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    landlord_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String)

    status: Mapped[UnitStatus] = mapped_column(String, default=UnitStatus.vacant.value)

    # Current occupant (tenant_id is NULL for manually entered tenants)
    tenant_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    tenant_name: Mapped[str] = mapped_column(String, default="")
    tenant_email: Mapped[str] = mapped_column(String, default="")

    # Pending join request
    pending_tenant_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    pending_tenant_name: Mapped[Optional[str]] = mapped_column(String)
    pending_tenant_email: Mapped[Optional[str]] = mapped_column(String)
    pending_requested_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    rent_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    billing_cycle: Mapped[BillingCycle] = mapped_column(String, default=BillingCycle.monthly.value)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    rental_property: Mapped["Property"] = relationship(back_populates="units")

    __table_args__ = (
        Index("ix_units_landlord_status", "landlord_id", "status"),
    )


# 4 InviteCode (property-scoped, shareable; kept after the property is deleted)
class InviteCode(Base):
    __tablename__ = "invite_codes"

    code: Mapped[str] = mapped_column(String(6), primary_key=True)
    landlord_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    property_id: Mapped[int] = mapped_column(Integer)
    property_name: Mapped[str] = mapped_column(String, default="")

    status: Mapped[InviteCodeStatus] = mapped_column(String, default=InviteCodeStatus.active.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("ix_invite_codes_lookup", "landlord_id", "property_id", "status"),
    )


# 5 InviteToken (single-use, time-boxed, never deleted)
class InviteToken(Base):
    __tablename__ = "invite_tokens"

    token: Mapped[str] = mapped_column(String(64), primary_key=True)
    landlord_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    property_id: Mapped[int] = mapped_column(Integer)
    # NULL means the tenant picks among vacant units when redeeming
    unit_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    unit_name: Mapped[str] = mapped_column(String, default="")
    property_name: Mapped[str] = mapped_column(String, default="")

    # Pricing frozen at invite time
    rent_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    billing_cycle: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    status: Mapped[InviteTokenStatus] = mapped_column(String, default=InviteTokenStatus.pending.value)
    accepted_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_invite_tokens_unit_status", "property_id", "unit_id", "status"),
    )


# 6 Tenancy (authoritative lease record, never deleted)
class Tenancy(Base):
    __tablename__ = "tenancies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    landlord_id: Mapped[int] = mapped_column(Integer, index=True)
    property_id: Mapped[int] = mapped_column(Integer)
    unit_id: Mapped[int] = mapped_column(Integer)
    tenant_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    tenant_name: Mapped[str] = mapped_column(String, default="")
    tenant_email: Mapped[str] = mapped_column(String, default="")
    unit_name: Mapped[str] = mapped_column(String, default="")
    property_name: Mapped[str] = mapped_column(String, default="")

    rent_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    billing_cycle: Mapped[str] = mapped_column(String, default=BillingCycle.monthly.value)
    currency: Mapped[str] = mapped_column(String(3), default="NGN")

    status: Mapped[TenancyStatus] = mapped_column(String, default=TenancyStatus.active.value)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    invoice_scheduling_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    next_invoice_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    invoices: Mapped[List["Invoice"]] = relationship(back_populates="tenancy")

    __table_args__ = (
        Index("ix_tenancies_unit_status", "landlord_id", "property_id", "unit_id", "status"),
    )


# 7 Notification (landlord inbox)
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    landlord_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    type: Mapped[NotificationType] = mapped_column(String)
    title: Mapped[str] = mapped_column(String, default="")
    message: Mapped[Optional[str]] = mapped_column(Text)

    property_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    unit_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    tenant_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


# 8 Invoice
class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenancy_id: Mapped[int] = mapped_column(ForeignKey("tenancies.id"), index=True)
    landlord_id: Mapped[int] = mapped_column(Integer)
    tenant_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(3), default="NGN")
    status: Mapped[InvoiceStatus] = mapped_column(String, default=InvoiceStatus.draft.value)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    tenancy: Mapped["Tenancy"] = relationship(back_populates="invoices")


# 9 Reminder (upcoming due date, one per invoice, audience and lead time)
class Reminder(Base):
    __tablename__ = "reminders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id"), index=True)
    tenancy_id: Mapped[int] = mapped_column(Integer)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    audience: Mapped[ReminderAudience] = mapped_column(String)
    days_before: Mapped[int] = mapped_column(Integer)

    title: Mapped[str] = mapped_column(String, default="")
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(3), default="NGN")
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    status: Mapped[ReminderStatus] = mapped_column(String, default=ReminderStatus.pending.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("invoice_id", "audience", "days_before", name="uq_reminders_invoice_audience_days"),
    )
