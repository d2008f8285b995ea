# registration_service/models/payment_record.py
from sqlalchemy import Column, String, Integer, DateTime, JSON, func
from sqlalchemy.dialects.postgresql import JSONB
from registration_service.db.base_class import Base
import uuid


class PaymentMethod:
    BANK_TRANSFER = "bank_transfer"
    GATEWAY = "gateway"


class PaymentRecordStatus:
    PENDING = "pending"  # Gateway initialised, or bank transfer attested
    SUCCESS = "success"
    FAILED = "failed"
    REJECTED = "rejected"  # Admin could not find the attested transfer
    SUPERSEDED = "superseded"  # Attested transfer overtaken by a gateway charge


class PaymentRecord(Base):
    """One row per payment attempt, manual or gateway."""
    __tablename__ = "payment_records"

    id = Column(
        String, primary_key=True, default=lambda: f"pay_{uuid.uuid4().hex[:12]}"
    )

    # Tracking numbers are unique across both registration tables
    tracking_number = Column(String(32), nullable=False, index=True)
    registration_kind = Column(String(16), nullable=False)  # individual | school

    amount = Column(Integer, nullable=False)  # Whole naira
    currency = Column(String(3), nullable=False, server_default="NGN")
    payment_method = Column(String(32), nullable=False)
    payment_gateway = Column(String(32), nullable=True)

    payment_reference = Column(String(128), unique=True, nullable=False)
    gateway_reference = Column(String(128), nullable=True)
    transaction_id = Column(String(128), nullable=True)
    gateway_response = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)

    payment_status = Column(String(32), nullable=False, server_default=PaymentRecordStatus.PENDING)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
