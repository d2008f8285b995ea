# registration_service/schemas/registration.py
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import List, Optional
from enum import Enum
from datetime import datetime


class PaymentStatus(str, Enum):
    pending = "pending"
    awaiting_verification = "awaiting_verification"
    paid = "paid"
    failed = "failed"


class RegistrationKind(str, Enum):
    individual = "individual"
    school = "school"


class Gender(str, Enum):
    male = "male"
    female = "female"


def normalize_phone(value: str) -> str:
    """Strip whitespace and separators so the same number always compares equal."""
    cleaned = "".join(ch for ch in value if ch.isdigit() or ch == "+")
    if len(cleaned.lstrip("+")) < 7:
        raise ValueError("phone number must contain at least 7 digits")
    return cleaned


class IndividualRegistrationCreate(BaseModel):
    full_name: str = Field(..., min_length=2, json_schema_extra={"example": "Ada Obi"})
    phone_number: str = Field(..., json_schema_extra={"example": "08012345678"})
    email: Optional[EmailStr] = Field(None, json_schema_extra={"example": "ada@example.com"})
    gender: Optional[Gender] = None
    state: Optional[str] = None
    lga: Optional[str] = None
    comments: Optional[str] = None
    # Ignored: the individual fee is fixed. Accepted so old clients keep working.
    amount: Optional[int] = None

    @field_validator("phone_number")
    @classmethod
    def clean_phone(cls, v: str) -> str:
        return normalize_phone(v)

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class ParticipantCreate(BaseModel):
    name: str = Field(..., min_length=1)
    class_name: Optional[str] = Field(None, json_schema_extra={"example": "JSS 2"})
    category_id: str


class SchoolRegistrationCreate(BaseModel):
    school_name: str = Field(..., min_length=2)
    contact_name: str = Field(..., min_length=2)
    contact_phone: str
    contact_email: Optional[EmailStr] = None
    category_ids: List[str] = Field(..., min_length=1)
    participants: List[ParticipantCreate] = Field(..., min_length=1)
    comments: Optional[str] = None

    @field_validator("contact_phone")
    @classmethod
    def clean_phone(cls, v: str) -> str:
        return normalize_phone(v)

    @model_validator(mode="after")
    def check_unique_categories(self):
        if len(set(self.category_ids)) != len(self.category_ids):
            raise ValueError("category_ids must not contain duplicates")
        return self


class RegistrationCreated(BaseModel):
    tracking_number: str
    kind: RegistrationKind
    payment_status: PaymentStatus
    amount_due: int
    created_at: datetime

    model_config = {"from_attributes": True}


class RegistrationStatus(BaseModel):
    """
    Public projection of a registration. Ticket links are only present once
    payment is verified; otherwise the client shows a processing state.
    """

    tracking_number: str
    kind: RegistrationKind
    name: str
    payment_status: PaymentStatus
    admin_verified: bool
    amount_due: int
    access_granted: bool
    display_status: str
    created_at: datetime
    ticket_url: Optional[str] = None
    participant_count: Optional[int] = None


class PhoneRecoveryItem(BaseModel):
    tracking_number: str
    kind: RegistrationKind
    name: str
    payment_status: PaymentStatus
    created_at: datetime


class AdminVerificationRequest(BaseModel):
    approve: bool


class AdminRegistration(BaseModel):
    tracking_number: str
    kind: RegistrationKind
    name: str
    phone: str
    email: Optional[str] = None
    payment_status: PaymentStatus
    admin_verified: bool
    amount_due: int
    payment_method: Optional[str] = None
    created_at: datetime


class AdminRegistrationPage(BaseModel):
    items: List[AdminRegistration]
    total: int


class AdminStats(BaseModel):
    total: int
    verified: int
    awaiting_verification: int
    unpaid: int
    failed: int
    checked_in: int
    revenue: int
