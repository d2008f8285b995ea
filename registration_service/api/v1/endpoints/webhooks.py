# registration_service/api/v1/endpoints/webhooks.py
"""
Webhook endpoint for the payment gateway.

- The signature is checked against the raw body before anything else
- Events are recorded and processed idempotently; a redelivered event that
  was already processed is acknowledged without touching any registration
"""
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from registration_service import crud
from registration_service.core.exceptions import GatewayUnavailable, RegistrationServiceError
from registration_service.db.session import get_db
from registration_service.schemas.payment import WebhookEventCreate
from registration_service.services.payment.payment_service import PaymentService
from registration_service.services.payment.provider_interface import WebhookEventType

logger = logging.getLogger(__name__)

router = APIRouter()


def get_webhook_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    return PaymentService(db)


@router.post("/paystack")
async def paystack_webhook(
    request: Request,
    paystack_signature: str = Header(None, alias="x-paystack-signature"),
    db: Session = Depends(get_db),
    payment_service: PaymentService = Depends(get_webhook_payment_service),
):
    """
    Handle Paystack webhook events.

    1. Verify the signature
    2. Skip events that were already processed
    3. Store the event, apply it, mark it processed (or failed)

    Paystack retries on non-2xx responses.
    """
    body = await request.body()

    if not paystack_signature:
        logger.warning("Webhook received without x-paystack-signature header")
        raise HTTPException(status_code=400, detail="Missing signature")

    client_ip = request.client.host if request.client else None

    try:
        provider = payment_service.provider
    except GatewayUnavailable:
        logger.warning(f"Paystack webhook from {client_ip} received but gateway is not configured")
        raise HTTPException(status_code=503, detail="Payment gateway not configured")

    if not provider.verify_webhook_signature(body, paystack_signature):
        logger.warning(f"Invalid webhook signature from {client_ip}")
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        event = provider.parse_webhook_event(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Malformed payload")

    if crud.webhook_event.is_already_processed(
        db, provider_code=provider.code, provider_event_id=event.event_id
    ):
        logger.info(f"Event {event.event_id} already processed, skipping")
        return {"status": "already_processed"}

    webhook_event = crud.webhook_event.upsert_event(
        db,
        obj_in=WebhookEventCreate(
            provider_code=provider.code,
            provider_event_id=event.event_id,
            provider_event_type=event.provider_event_type,
            payload=event.raw_payload,
            signature_verified=True,
            ip_address=client_ip,
        ),
    )
    crud.webhook_event.mark_processing(db, event_id=webhook_event.id)

    if event.event_type not in (WebhookEventType.CHARGE_SUCCEEDED, WebhookEventType.CHARGE_FAILED):
        crud.webhook_event.mark_processed(db, event_id=webhook_event.id)
        return {"status": "ignored", "event_id": event.event_id}

    reference = event.data.get("reference")
    try:
        verification = provider.to_verification(event.data)
        result = payment_service.apply_verification(reference, verification)
    except RegistrationServiceError as e:
        logger.error(f"Error processing webhook event {event.event_id}: {e.message}")
        crud.webhook_event.mark_failed(db, event_id=webhook_event.id, error=e.message)
        # Acknowledge so the gateway stops retrying; the stored event can be replayed
        return {"status": "processing_error", "event_id": event.event_id}

    crud.webhook_event.mark_processed(db, event_id=webhook_event.id, payment_reference=reference)
    return {
        "status": "processed",
        "event_id": event.event_id,
        "payment_status": result["payment_status"],
    }
