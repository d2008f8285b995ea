# registration_service/api/v1/endpoints/payments.py
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from registration_service.core.exceptions import GatewayUnavailable
from registration_service.db.session import get_db
from registration_service.schemas.payment import (
    InitializePaymentRequest,
    InitializePaymentResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from registration_service.services import lifecycle
from registration_service.services.payment.payment_service import (
    PaymentService,
    bank_transfer_instructions,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Payments"])


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    return PaymentService(db)


@router.post("/payments/initialize", response_model=InitializePaymentResponse)
async def initialize_payment(
    payment_in: InitializePaymentRequest,
    db: Session = Depends(get_db),
    payment_service: PaymentService = Depends(get_payment_service),
):
    """
    Start an online payment. Without a configured gateway the response
    carries bank transfer instructions instead, and the registrant confirms
    the transfer through attest-payment.
    """
    try:
        return await payment_service.initialize_payment(
            payment_in.tracking_number,
            email=payment_in.email,
            callback_url=payment_in.callback_url,
        )
    except GatewayUnavailable:
        registration = lifecycle.find_registration(db, payment_in.tracking_number)
        logger.info(
            f"No gateway configured, sending bank transfer details for "
            f"{registration.tracking_number}"
        )
        return {
            "mode": "manual",
            "tracking_number": registration.tracking_number,
            "amount": registration.amount_due,
            "bank_transfer": bank_transfer_instructions(registration),
        }


@router.post("/payments/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    verify_in: VerifyPaymentRequest,
    payment_service: PaymentService = Depends(get_payment_service),
):
    """Confirm a gateway payment by reference. Safe to call repeatedly."""
    return await payment_service.verify_payment(verify_in.reference)
