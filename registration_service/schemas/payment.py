# registration_service/schemas/payment.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Any, Dict
from enum import Enum


class PaymentRecordStatus(str, Enum):
    pending = "pending"
    success = "success"
    failed = "failed"
    rejected = "rejected"


class WebhookEventStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    processed = "processed"
    failed = "failed"


class PaymentRecordCreate(BaseModel):
    tracking_number: str
    registration_kind: str
    amount: int
    currency: str = "NGN"
    payment_method: str
    payment_gateway: Optional[str] = None
    payment_reference: str
    gateway_reference: Optional[str] = None


class PaymentRecordUpdate(BaseModel):
    gateway_reference: Optional[str] = None
    transaction_id: Optional[str] = None
    gateway_response: Optional[Dict[str, Any]] = None
    payment_status: Optional[PaymentRecordStatus] = None


class InitializePaymentRequest(BaseModel):
    tracking_number: str
    email: Optional[EmailStr] = Field(None, description="Overrides the email on file")
    callback_url: Optional[str] = None


class BankTransferInstructions(BaseModel):
    bank_name: str
    account_name: str
    account_number: str
    amount: int
    narration: str


class InitializePaymentResponse(BaseModel):
    mode: str  # "gateway" | "manual"
    tracking_number: str
    amount: int
    reference: Optional[str] = None
    authorization_url: Optional[str] = None
    bank_transfer: Optional[BankTransferInstructions] = None


class VerifyPaymentRequest(BaseModel):
    reference: str


class VerifyPaymentResponse(BaseModel):
    reference: str
    tracking_number: str
    payment_status: str
    record_status: PaymentRecordStatus
    already_processed: bool = False


class WebhookEventCreate(BaseModel):
    provider_code: str
    provider_event_id: str
    provider_event_type: str
    payload: Dict[str, Any]
    signature_verified: bool = False
    ip_address: Optional[str] = None


class WebhookEventUpdate(BaseModel):
    status: Optional[WebhookEventStatus] = None
    processing_error: Optional[str] = None
