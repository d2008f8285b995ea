# registration_service/crud/crud_webhook_event.py
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from .base import CRUDBase
from registration_service.models.payment_webhook_event import PaymentWebhookEvent
from registration_service.schemas.payment import WebhookEventCreate, WebhookEventUpdate


class CRUDWebhookEvent(CRUDBase[PaymentWebhookEvent, WebhookEventCreate, WebhookEventUpdate]):
    """CRUD operations for PaymentWebhookEvent model."""

    def get_by_provider_event_id(
        self, db: Session, *, provider_code: str, provider_event_id: str
    ) -> Optional[PaymentWebhookEvent]:
        return (
            db.query(self.model)
            .filter(
                and_(
                    self.model.provider_code == provider_code,
                    self.model.provider_event_id == provider_event_id,
                )
            )
            .first()
        )

    def is_already_processed(
        self, db: Session, *, provider_code: str, provider_event_id: str
    ) -> bool:
        event = self.get_by_provider_event_id(
            db, provider_code=provider_code, provider_event_id=provider_event_id
        )
        return event is not None and event.status == "processed"

    def upsert_event(
        self, db: Session, *, obj_in: WebhookEventCreate
    ) -> PaymentWebhookEvent:
        """Create the event record, or refresh the payload of a redelivered one."""
        existing = self.get_by_provider_event_id(
            db,
            provider_code=obj_in.provider_code,
            provider_event_id=obj_in.provider_event_id,
        )
        if existing:
            existing.payload = obj_in.payload
            existing.signature_verified = obj_in.signature_verified
            existing.ip_address = obj_in.ip_address
            db.add(existing)
            db.commit()
            db.refresh(existing)
            return existing

        db_obj = self.model(**obj_in.model_dump(), status="pending")
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def mark_processing(self, db: Session, *, event_id: str) -> Optional[PaymentWebhookEvent]:
        event = self.get(db, id=event_id)
        if not event:
            return None
        event.status = "processing"
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    def mark_processed(
        self, db: Session, *, event_id: str, payment_reference: Optional[str] = None
    ) -> Optional[PaymentWebhookEvent]:
        event = self.get(db, id=event_id)
        if not event:
            return None
        event.status = "processed"
        event.processed_at = datetime.now(timezone.utc)
        event.processing_error = None
        if payment_reference:
            event.payment_reference = payment_reference
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    def mark_failed(
        self, db: Session, *, event_id: str, error: str
    ) -> Optional[PaymentWebhookEvent]:
        event = self.get(db, id=event_id)
        if not event:
            return None
        event.status = "failed"
        event.processing_error = error
        event.retry_count = (event.retry_count or 0) + 1
        db.add(event)
        db.commit()
        db.refresh(event)
        return event


webhook_event = CRUDWebhookEvent(PaymentWebhookEvent)
