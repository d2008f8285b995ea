# registration_service/models/payment_webhook_event.py
from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    Integer,
    Text,
    JSON,
    UniqueConstraint,
    func,
    false,
)
from sqlalchemy.dialects.postgresql import JSONB
from registration_service.db.base_class import Base
import uuid


class PaymentWebhookEvent(Base):
    __tablename__ = "payment_webhook_events"
    __table_args__ = (
        UniqueConstraint("provider_code", "provider_event_id", name="uq_provider_event"),
    )

    id = Column(
        String, primary_key=True, default=lambda: f"whe_{uuid.uuid4().hex[:12]}"
    )

    provider_code = Column(String(50), nullable=False)
    provider_event_id = Column(String(255), nullable=False)
    provider_event_type = Column(String(100), nullable=False)  # e.g. 'charge.success'

    # Values: 'pending', 'processing', 'processed', 'failed'
    status = Column(String(50), nullable=False, server_default="pending")

    payload = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    signature_verified = Column(Boolean, server_default=false(), nullable=False)

    processed_at = Column(DateTime(timezone=True), nullable=True)
    processing_error = Column(Text, nullable=True)
    retry_count = Column(Integer, server_default="0", nullable=False)

    # Payment reference the event resolved to
    payment_reference = Column(String(128), nullable=True)

    ip_address = Column(String(45), nullable=True)
    received_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def is_processed(self) -> bool:
        return self.status == "processed"
