from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Column, String, Text
from sqlmodel import Field, SQLModel


class RoomStatus(str, Enum):
    vacant = "vacant"
    occupied = "occupied"
    maintenance = "maintenance"
    reserved = "reserved"


class BillingStatus(str, Enum):
    new_invoice = "new_invoice"
    pending = "pending"
    paid = "paid"
    overdue = "overdue"


class VisitorStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(sa_column=Column(String(128), unique=True, nullable=False))
    password_hash: str
    role: str = Field(default="user")  # superadmin admin staff user
    full_name: Optional[str] = None
    email: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Room(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    unit_number: str = Field(sa_column=Column(String(64), unique=True, nullable=False))
    floor_number: int = Field(default=1)
    room_type: str = Field(default="studio")
    number_of_beds: int = Field(default=1)
    # smallest currency unit
    monthly_rate: int = Field(default=0)
    # cached; recomputed from the occupancy ledger
    status: str = Field(default=RoomStatus.vacant.value)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None


class Resident(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    full_name: str
    ic_number: str = Field(sa_column=Column(String(64), unique=True, nullable=False))
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    emergency_contact: Optional[str] = None
    # mirrors the room of the active occupancy
    room_id: Optional[int] = Field(default=None, foreign_key="room.id", index=True)
    billing_date: int = Field(default=1)  # day of month 1..31
    classification: Optional[str] = None
    sales_referral: Optional[str] = None
    notes: Optional[str] = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None


class NextOfKin(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    resident_id: int = Field(foreign_key="resident.id", index=True)
    full_name: str
    relationship: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Occupancy(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    room_id: int = Field(foreign_key="room.id", index=True)
    resident_id: int = Field(foreign_key="resident.id", index=True)
    start_date: date
    end_date: date
    active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None


class Billing(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    resident_id: int = Field(foreign_key="resident.id", index=True)
    occupancy_id: Optional[int] = Field(default=None, foreign_key="occupancy.id")
    amount: int
    due_date: date = Field(index=True)
    status: str = Field(default=BillingStatus.pending.value)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    billing_account: Optional[str] = None
    invoice_file: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None


class Visitor(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    resident_id: Optional[int] = Field(default=None, foreign_key="resident.id")
    full_name: str
    email: str
    phone: str
    country_code: str = Field(default="+60")
    purpose: Optional[str] = None
    visit_date: date
    visit_time: Optional[str] = None
    status: str = Field(default=VisitorStatus.pending.value)
    approved_by_id: Optional[int] = Field(default=None, foreign_key="user.id")
    approved_at: Optional[datetime] = None
    qr_code: Optional[str] = Field(
        default=None, sa_column=Column(String(128), unique=True, nullable=True)
    )
    resident_name: Optional[str] = None
    room_number: Optional[str] = None
    vehicle_number: Optional[str] = None
    number_of_visitors: Optional[int] = None
    details: Optional[str] = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None


class AppSettings(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    property_name: str = Field(default="Sukha Senior Resort")
    contact_phone: Optional[str] = None
    billing_generation_enabled: bool = Field(default=True)
    billing_reminder_days: int = Field(default=7)
    default_billing_account: str = Field(default="sukha_golden")
    visitor_approval_notification: bool = Field(default=True)
    wabot_enabled: bool = Field(default=False)
    wabot_api_base_url: Optional[str] = None
    wabot_instance_id: Optional[str] = None
    wabot_access_token: Optional[str] = None
    updated_at: Optional[datetime] = None


class AuditLog(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    actor_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    action: str
    before: Optional[str] = Field(default=None, sa_column=Column(Text))
    after: Optional[str] = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(default_factory=datetime.utcnow)
