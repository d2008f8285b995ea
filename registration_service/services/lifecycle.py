# registration_service/services/lifecycle.py
"""
Registration lifecycle.

State over (payment_status, admin_verified):

    pending --attest--> awaiting_verification --approve--> paid (verified)
                                              --reject---> pending
    pending --gateway success--> paid (verified)
    pending --gateway failure--> failed --retry--> pending

Every transition is a single UPDATE guarded on the expected current status,
so repeated clicks, double admin approvals and redelivered gateway callbacks
are no-ops. Each operation returns the registration re-read after the write.
"""
import logging
import time
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from registration_service import crud
from registration_service.core.config import settings
from registration_service.core.exceptions import NotFound
from registration_service.crud.crud_registration import normalize_tracking_number
from registration_service.models.payment_record import PaymentMethod, PaymentRecordStatus
from registration_service.models.registration import (
    IndividualRegistration,
    PaymentStatus,
    Registration,
)

logger = logging.getLogger(__name__)

AnyRegistration = Union[IndividualRegistration, Registration]

DISPLAY_STATUS = {
    PaymentStatus.PENDING: "awaiting_payment",
    PaymentStatus.AWAITING_VERIFICATION: "processing",
    PaymentStatus.FAILED: "payment_failed",
}


def crud_for(registration: AnyRegistration):
    if isinstance(registration, IndividualRegistration):
        return crud.individual_registration
    return crud.school_registration


def find_registration(db: Session, tracking_number: str) -> AnyRegistration:
    """Look a tracking number up in both registration tables."""
    normalized = normalize_tracking_number(tracking_number)
    for registry in (crud.individual_registration, crud.school_registration):
        registration = registry.get_by_tracking_number(db, tracking_number=normalized)
        if registration is not None:
            return registration
    raise NotFound(f"No registration found for tracking number {normalized}")


def has_access(registration: AnyRegistration) -> bool:
    """Dashboard and ticket download are unlocked only for verified payments."""
    return (
        registration.payment_status == PaymentStatus.PAID
        and registration.admin_verified is True
    )


def display_status(registration: AnyRegistration) -> str:
    if has_access(registration):
        return "verified"
    return DISPLAY_STATUS.get(registration.payment_status, "processing")


def status_projection(registration: AnyRegistration) -> dict:
    """Public view of a registration. Ticket data only appears once verified."""
    access = has_access(registration)
    projection = {
        "tracking_number": registration.tracking_number,
        "kind": registration.kind,
        "name": registration.display_name,
        "payment_status": registration.payment_status,
        "admin_verified": bool(registration.admin_verified),
        "amount_due": registration.amount_due,
        "access_granted": access,
        "display_status": display_status(registration),
        "created_at": registration.created_at,
        "ticket_url": None,
        "participant_count": None,
    }
    if isinstance(registration, Registration):
        projection["participant_count"] = len(registration.participants)
    if access:
        projection["ticket_url"] = (
            f"/api/v1/registrations/{registration.tracking_number}/ticket"
        )
    return projection


def _manual_reference(tracking_number: str) -> str:
    return f"{settings.PAYMENT_REFERENCE_PREFIX}_{tracking_number}_bt_{int(time.time() * 1000)}"


def attest_payment(db: Session, tracking_number: str) -> AnyRegistration:
    """
    Registrant says the bank transfer was made.

    pending/failed -> awaiting_verification. Repeating it while awaiting
    verification (or after payment) changes nothing and adds no payment record.
    """
    registration = find_registration(db, tracking_number)
    previous = registration.payment_status
    moved = crud_for(registration).compare_and_set(
        db,
        registration_id=registration.id,
        from_statuses=(PaymentStatus.PENDING, PaymentStatus.FAILED),
        values={
            "payment_status": PaymentStatus.AWAITING_VERIFICATION,
            "payment_method": PaymentMethod.BANK_TRANSFER,
        },
    )
    if moved:
        crud.payment_record.add_manual(
            db,
            tracking_number=registration.tracking_number,
            registration_kind=registration.kind,
            amount=registration.amount_due,
            currency=settings.CURRENCY,
            reference=_manual_reference(registration.tracking_number),
        )
    db.commit()

    if moved:
        logger.info(
            f"Registration {registration.tracking_number}: "
            f"{previous} -> awaiting_verification (attested)"
        )
    else:
        logger.info(
            f"Registration {registration.tracking_number}: attestation ignored, "
            f"status is {previous}"
        )
    db.refresh(registration)
    return registration


def verify_payment(
    db: Session, tracking_number: str, approve: bool, operator: Optional[str] = None
) -> AnyRegistration:
    """
    Admin decision on an attested bank transfer.

    Only acts on registrations awaiting verification; anything else is a
    no-op so a double click cannot flip a decision. Tickets are not issued
    here, they are minted on first access.
    """
    registration = find_registration(db, tracking_number)
    previous = registration.payment_status
    if approve:
        values = {"payment_status": PaymentStatus.PAID, "admin_verified": True}
        record_status = PaymentRecordStatus.SUCCESS
    else:
        values = {"payment_status": PaymentStatus.PENDING, "admin_verified": False}
        record_status = PaymentRecordStatus.REJECTED

    moved = crud_for(registration).compare_and_set(
        db,
        registration_id=registration.id,
        from_statuses=(PaymentStatus.AWAITING_VERIFICATION,),
        values=values,
    )
    if moved:
        crud.payment_record.set_status_for_tracking(
            db,
            tracking_number=registration.tracking_number,
            payment_method=PaymentMethod.BANK_TRANSFER,
            from_statuses=(PaymentRecordStatus.PENDING,),
            new_status=record_status,
        )
    db.commit()

    if moved:
        logger.info(
            f"Registration {registration.tracking_number}: awaiting_verification -> "
            f"{values['payment_status']} ({'approved' if approve else 'rejected'} "
            f"by {operator or 'admin'})"
        )
    else:
        logger.info(
            f"Registration {registration.tracking_number}: verification ignored, "
            f"status is {previous}"
        )
    db.refresh(registration)
    return registration


def retry_payment(db: Session, tracking_number: str) -> AnyRegistration:
    """failed -> pending, so the registrant can pay again."""
    registration = find_registration(db, tracking_number)
    moved = crud_for(registration).compare_and_set(
        db,
        registration_id=registration.id,
        from_statuses=(PaymentStatus.FAILED,),
        values={"payment_status": PaymentStatus.PENDING},
    )
    db.commit()
    if moved:
        logger.info(f"Registration {registration.tracking_number}: failed -> pending (retry)")
    db.refresh(registration)
    return registration


def mark_gateway_paid(db: Session, registration: AnyRegistration) -> bool:
    """
    A verified gateway charge settles the registration without admin review.
    An attested bank transfer still awaiting review is closed as superseded.
    Does not commit.
    """
    moved = crud_for(registration).compare_and_set(
        db,
        registration_id=registration.id,
        from_statuses=(
            PaymentStatus.PENDING,
            PaymentStatus.FAILED,
            PaymentStatus.AWAITING_VERIFICATION,
        ),
        values={
            "payment_status": PaymentStatus.PAID,
            "admin_verified": True,
            "payment_method": PaymentMethod.GATEWAY,
        },
    )
    if moved:
        crud.payment_record.set_status_for_tracking(
            db,
            tracking_number=registration.tracking_number,
            payment_method=PaymentMethod.BANK_TRANSFER,
            from_statuses=(PaymentRecordStatus.PENDING,),
            new_status=PaymentRecordStatus.SUPERSEDED,
        )
    return moved


def mark_gateway_failed(db: Session, registration: AnyRegistration) -> bool:
    """Does not commit."""
    return crud_for(registration).compare_and_set(
        db,
        registration_id=registration.id,
        from_statuses=(PaymentStatus.PENDING,),
        values={"payment_status": PaymentStatus.FAILED},
    )


def recover_by_phone(db: Session, phone_number: str) -> List[AnyRegistration]:
    """Every registration made with this phone number, oldest first."""
    registrations: List[AnyRegistration] = []
    individual = crud.individual_registration.get_by_phone(db, phone_number=phone_number)
    if individual is not None:
        registrations.append(individual)
    registrations.extend(crud.school_registration.get_by_phone(db, phone_number=phone_number))
    return sorted(registrations, key=lambda r: r.created_at)
