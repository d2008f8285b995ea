# registration_service/crud/crud_payment_record.py
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_, update
from sqlalchemy.orm import Session

from .base import CRUDBase
from registration_service.models.payment_record import (
    PaymentMethod,
    PaymentRecord,
    PaymentRecordStatus,
)
from registration_service.schemas.payment import PaymentRecordCreate, PaymentRecordUpdate


class CRUDPaymentRecord(CRUDBase[PaymentRecord, PaymentRecordCreate, PaymentRecordUpdate]):
    def get_by_reference(self, db: Session, *, reference: str) -> Optional[PaymentRecord]:
        return (
            db.query(self.model).filter(self.model.payment_reference == reference).first()
        )

    def get_by_tracking_number(self, db: Session, *, tracking_number: str) -> List[PaymentRecord]:
        return (
            db.query(self.model)
            .filter(self.model.tracking_number == tracking_number)
            .order_by(self.model.created_at)
            .all()
        )

    def add_manual(
        self, db: Session, *, tracking_number: str, registration_kind: str, amount: int,
        reference: str, currency: str,
    ) -> PaymentRecord:
        """Stage a bank-transfer attestation record. The caller commits."""
        db_obj = self.model(
            tracking_number=tracking_number,
            registration_kind=registration_kind,
            amount=amount,
            currency=currency,
            payment_method=PaymentMethod.BANK_TRANSFER,
            payment_reference=reference,
            payment_status=PaymentRecordStatus.PENDING,
        )
        db.add(db_obj)
        return db_obj

    def set_status_for_tracking(
        self,
        db: Session,
        *,
        tracking_number: str,
        payment_method: str,
        from_statuses: Iterable[str],
        new_status: str,
    ) -> int:
        """Update the open records of one method. The caller commits."""
        result = db.execute(
            update(self.model)
            .where(
                and_(
                    self.model.tracking_number == tracking_number,
                    self.model.payment_method == payment_method,
                    self.model.payment_status.in_(list(from_statuses)),
                )
            )
            .values(payment_status=new_status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def settle(
        self,
        db: Session,
        *,
        reference: str,
        new_status: str,
        gateway_response: Optional[Dict[str, Any]] = None,
        transaction_id: Optional[str] = None,
    ) -> bool:
        """
        Move a pending record to its final status exactly once.
        Returns True for the call that performed the move. The caller commits.
        """
        values: Dict[str, Any] = {"payment_status": new_status}
        if gateway_response is not None:
            values["gateway_response"] = gateway_response
        if transaction_id is not None:
            values["transaction_id"] = transaction_id

        result = db.execute(
            update(self.model)
            .where(
                and_(
                    self.model.payment_reference == reference,
                    self.model.payment_status == PaymentRecordStatus.PENDING,
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


payment_record = CRUDPaymentRecord(PaymentRecord)
