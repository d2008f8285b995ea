# registration_service/services/payment/payment_service.py
"""
Gateway payments for registrations.

A payment record is settled by one conditional UPDATE (pending -> success or
failed). Whichever of the verify call or the webhook gets there first moves
the registration; every later delivery of the same outcome is a no-op.
"""
import logging
import time
from typing import Optional

from sqlalchemy.orm import Session

from registration_service import crud
from registration_service.core.config import settings
from registration_service.core.exceptions import (
    ConstraintViolation,
    GatewayError,
    GatewayTimeout,
    NotFound,
)
from registration_service.models.payment_record import PaymentMethod, PaymentRecordStatus
from registration_service.models.registration import PaymentStatus
from registration_service.schemas.payment import PaymentRecordCreate
from registration_service.services import lifecycle
from .provider_factory import get_payment_provider
from .provider_interface import (
    InitializeTransactionParams,
    PaymentProviderInterface,
    TransactionStatus,
    TransactionVerification,
)

logger = logging.getLogger(__name__)


def bank_transfer_instructions(registration) -> dict:
    return {
        "bank_name": settings.BANK_NAME,
        "account_name": settings.BANK_ACCOUNT_NAME,
        "account_number": settings.BANK_ACCOUNT_NUMBER,
        "amount": registration.amount_due,
        "narration": registration.tracking_number,
    }


class PaymentService:
    def __init__(self, db: Session, provider: Optional[PaymentProviderInterface] = None):
        self.db = db
        self._provider = provider

    @property
    def provider(self) -> PaymentProviderInterface:
        # Raises GatewayUnavailable when no gateway is configured
        if self._provider is None:
            self._provider = get_payment_provider()
        return self._provider

    def _new_reference(self, tracking_number: str) -> str:
        return f"{settings.PAYMENT_REFERENCE_PREFIX}_{tracking_number}_{int(time.time() * 1000)}"

    async def initialize_payment(
        self,
        tracking_number: str,
        email: Optional[str] = None,
        callback_url: Optional[str] = None,
    ) -> dict:
        """Start a hosted checkout for the full amount due."""
        registration = lifecycle.find_registration(self.db, tracking_number)
        if registration.payment_status not in (PaymentStatus.PENDING, PaymentStatus.FAILED):
            raise ConstraintViolation(
                f"Registration {registration.tracking_number} cannot start a payment "
                f"while its status is {registration.payment_status}",
                field="tracking_number",
            )

        provider = self.provider
        email = email or registration.email
        if not email:
            raise ConstraintViolation(
                f"An email address is required to pay online for {registration.tracking_number}",
                field="email",
            )

        reference = self._new_reference(registration.tracking_number)
        crud.payment_record.create(
            self.db,
            obj_in=PaymentRecordCreate(
                tracking_number=registration.tracking_number,
                registration_kind=registration.kind,
                amount=registration.amount_due,
                currency=settings.CURRENCY,
                payment_method=PaymentMethod.GATEWAY,
                payment_gateway=provider.code,
                payment_reference=reference,
            ),
        )

        params = InitializeTransactionParams(
            reference=reference,
            amount=registration.amount_due * 100,
            currency=settings.CURRENCY,
            email=email,
            callback_url=callback_url
            or f"{settings.FRONTEND_URL}/payment/callback?tracking={registration.tracking_number}",
            metadata={
                "tracking_number": registration.tracking_number,
                "registration_kind": registration.kind,
                "name": registration.display_name,
            },
        )
        try:
            result = await provider.initialize_transaction(params)
        except (GatewayError, GatewayTimeout):
            crud.payment_record.settle(
                self.db, reference=reference, new_status=PaymentRecordStatus.FAILED
            )
            self.db.commit()
            raise

        record = crud.payment_record.get_by_reference(self.db, reference=reference)
        crud.payment_record.update(
            self.db, db_obj=record, obj_in={"gateway_reference": result.access_code}
        )
        logger.info(
            f"Gateway payment {reference} started for {registration.tracking_number} "
            f"(amount={registration.amount_due})"
        )
        return {
            "mode": "gateway",
            "tracking_number": registration.tracking_number,
            "amount": registration.amount_due,
            "reference": reference,
            "authorization_url": result.authorization_url,
        }

    async def verify_payment(self, reference: str) -> dict:
        """
        Resolve a reference against the gateway. A reference that has already
        been settled is answered from the database without calling out.
        """
        record = crud.payment_record.get_by_reference(self.db, reference=reference)
        if record is None:
            raise NotFound(f"No payment found for reference {reference}")

        if record.payment_status != PaymentRecordStatus.PENDING:
            registration = lifecycle.find_registration(self.db, record.tracking_number)
            return self._result(record, registration, already_processed=True)

        verification = await self.provider.verify_transaction(reference)
        return self.apply_verification(reference, verification)

    def apply_verification(self, reference: str, verification: TransactionVerification) -> dict:
        """Apply a gateway outcome exactly once."""
        record = crud.payment_record.get_by_reference(self.db, reference=reference)
        if record is None:
            raise NotFound(f"No payment found for reference {reference}")
        registration = lifecycle.find_registration(self.db, record.tracking_number)

        status = verification.status
        if status == TransactionStatus.SUCCEEDED and verification.amount < record.amount * 100:
            logger.warning(
                f"Payment {reference} for {record.tracking_number} underpaid: "
                f"{verification.amount} kobo of {record.amount * 100}"
            )
            status = TransactionStatus.FAILED

        settled = False
        if status == TransactionStatus.SUCCEEDED:
            settled = crud.payment_record.settle(
                self.db,
                reference=reference,
                new_status=PaymentRecordStatus.SUCCESS,
                gateway_response=verification.raw,
                transaction_id=verification.transaction_id,
            )
            if settled:
                lifecycle.mark_gateway_paid(self.db, registration)
        elif status == TransactionStatus.FAILED:
            settled = crud.payment_record.settle(
                self.db,
                reference=reference,
                new_status=PaymentRecordStatus.FAILED,
                gateway_response=verification.raw,
                transaction_id=verification.transaction_id,
            )
            if settled:
                lifecycle.mark_gateway_failed(self.db, registration)
        self.db.commit()

        self.db.refresh(record)
        self.db.refresh(registration)
        if settled:
            logger.info(
                f"Payment {reference} settled as {record.payment_status}; registration "
                f"{registration.tracking_number} is now {registration.payment_status}"
            )
        already_processed = not settled and status != TransactionStatus.PENDING
        return self._result(record, registration, already_processed=already_processed)

    def _result(self, record, registration, already_processed: bool) -> dict:
        return {
            "reference": record.payment_reference,
            "tracking_number": registration.tracking_number,
            "payment_status": registration.payment_status,
            "record_status": record.payment_status,
            "already_processed": already_processed,
        }
