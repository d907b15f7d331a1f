from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


def _reject_nulls(model: BaseModel, fields) -> None:
    # omitted means "leave alone"; an explicit null would hit a NOT NULL column
    sent_null = [f for f in fields if f in model.model_fields_set and getattr(model, f) is None]
    if sent_null:
        raise ValueError(f"{', '.join(sent_null)} may not be null")


class NextOfKinCreate(BaseModel):
    full_name: str = Field(..., min_length=2)
    relationship: str
    phone: str = Field(..., min_length=10)
    email: Optional[str] = None
    address: Optional[str] = None


class ResidentBase(BaseModel):
    full_name: str = Field(..., min_length=2)
    ic_number: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = Field(None, min_length=10)
    date_of_birth: Optional[date] = None
    emergency_contact: Optional[str] = None
    billing_date: int = Field(1, ge=1, le=31, description="Day of month invoices fall due")
    classification: Optional[str] = None
    sales_referral: Optional[str] = None
    notes: Optional[str] = None


class ResidentCreate(ResidentBase):
    room_id: Optional[int] = None
    next_of_kin: List[NextOfKinCreate] = []


class ResidentUpdate(BaseModel):
    # every field optional; an explicit null room_id clears the assignment
    full_name: Optional[str] = Field(None, min_length=2)
    ic_number: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = Field(None, min_length=10)
    date_of_birth: Optional[date] = None
    emergency_contact: Optional[str] = None
    billing_date: Optional[int] = Field(None, ge=1, le=31)
    classification: Optional[str] = None
    sales_referral: Optional[str] = None
    notes: Optional[str] = None
    room_id: Optional[int] = None

    @model_validator(mode="after")
    def _required_fields_not_null(self):
        _reject_nulls(self, ("full_name", "ic_number", "billing_date"))
        return self


class RoomCreate(BaseModel):
    unit_number: str = Field(..., min_length=2)
    floor_number: int = 1
    room_type: str = "studio"
    number_of_beds: int = Field(1, ge=1)
    monthly_rate: int = Field(..., ge=0)
    description: Optional[str] = None


class RoomUpdate(BaseModel):
    unit_number: Optional[str] = Field(None, min_length=2)
    floor_number: Optional[int] = None
    room_type: Optional[str] = None
    number_of_beds: Optional[int] = Field(None, ge=1)
    monthly_rate: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    # occupied is derived from the ledger; "vacant" clears a manual flag
    status: Optional[Literal["vacant", "maintenance", "reserved"]] = None

    @model_validator(mode="after")
    def _required_fields_not_null(self):
        _reject_nulls(
            self, ("unit_number", "floor_number", "room_type", "number_of_beds", "monthly_rate", "status")
        )
        return self


BillingStatusLiteral = Literal["new_invoice", "pending", "paid", "overdue"]


class BillingCreate(BaseModel):
    resident_id: int
    occupancy_id: Optional[int] = None
    amount: int = Field(..., ge=0)
    due_date: date
    status: BillingStatusLiteral = "pending"
    description: Optional[str] = None
    billing_account: Optional[str] = None


class BillingUpdate(BaseModel):
    amount: Optional[int] = Field(None, ge=0)
    due_date: Optional[date] = None
    status: Optional[BillingStatusLiteral] = None
    description: Optional[str] = None
    billing_account: Optional[str] = None
    invoice_file: Optional[str] = None

    @model_validator(mode="after")
    def _required_fields_not_null(self):
        _reject_nulls(self, ("amount", "due_date", "status"))
        return self


class VisitorCreate(BaseModel):
    resident_id: Optional[int] = None
    full_name: str = Field(..., min_length=2)
    email: str = Field(..., min_length=3)
    phone: str = Field(..., min_length=10)
    country_code: str = "+60"
    purpose: Optional[str] = None
    visit_date: date
    visit_time: Optional[str] = None
    resident_name: Optional[str] = None
    room_number: Optional[str] = None
    vehicle_number: Optional[str] = None
    number_of_visitors: Optional[int] = Field(None, ge=1)
    details: Optional[str] = None


class PublicVisitorRegistration(BaseModel):
    full_name: str = Field(..., min_length=2)
    email: str = Field(..., min_length=3)
    phone: str = Field(..., min_length=10)
    resident_name: Optional[str] = None
    room_number: Optional[str] = None
    visit_date: date
    visit_time: str
    vehicle_number: Optional[str] = None
    number_of_visitors: int = Field(..., ge=1)
    purpose: Literal[
        "General Visit of Father/Mother/Relative", "Site Visit", "Celebration", "Other"
    ]
    other_purpose: Optional[str] = None

    @model_validator(mode="after")
    def _other_purpose_required(self):
        if self.purpose == "Other" and not (self.other_purpose or "").strip():
            raise ValueError("Please specify the purpose of your visit")
        return self


class SettingsUpdate(BaseModel):
    property_name: Optional[str] = None
    contact_phone: Optional[str] = None
    billing_generation_enabled: Optional[bool] = None
    billing_reminder_days: Optional[int] = Field(None, ge=0)
    default_billing_account: Optional[str] = None
    visitor_approval_notification: Optional[bool] = None
    wabot_enabled: Optional[bool] = None
    wabot_api_base_url: Optional[str] = None
    wabot_instance_id: Optional[str] = None
    wabot_access_token: Optional[str] = None


class GenerationResults(BaseModel):
    generated: int = 0
    skipped: int = 0
    errors: List[str] = []


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    role: str = "staff"
    full_name: Optional[str] = None
    email: Optional[str] = None
