# registration_service/schemas/ticket.py
from pydantic import BaseModel, Field
from typing import Literal, List, Optional
from datetime import datetime


class Ticket(BaseModel):
    ticket_number: str
    holder_key: str
    holder_name: str
    role: str
    category_id: Optional[str] = None
    qr_payload: str
    checked_in: bool
    checked_in_at: Optional[datetime] = None
    checked_in_by: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TicketBundle(BaseModel):
    tracking_number: str
    tickets: List[Ticket]


class CompanionTicketRequest(BaseModel):
    category_id: str
    name: str = Field(..., min_length=2)
    role: Literal["teacher", "visitor"]


class CheckInRequest(BaseModel):
    # Either a printed ticket number or the token scanned from its QR code
    code: str = Field(..., min_length=3)


class TicketValidation(BaseModel):
    """Staff view of a scanned ticket before committing the check-in."""

    ticket: Ticket
    tracking_number: str
    registration_name: str
    payment_status: str
    admin_verified: bool
    can_check_in: bool
    reason: Optional[str] = None


class Certificate(BaseModel):
    participant_name: str
    tracking_number: str
    ticket_number: str
    event_name: str
    event_date: str
    checked_in_at: datetime
    school_name: Optional[str] = None
    gender: Optional[str] = None
    state: Optional[str] = None
    lga: Optional[str] = None
