# registration_service/api/v1/endpoints/registrations.py
import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from registration_service import crud
from registration_service.core.limiter import limiter
from registration_service.db.session import get_db
from registration_service.schemas.registration import (
    IndividualRegistrationCreate,
    PhoneRecoveryItem,
    RegistrationCreated,
    RegistrationStatus,
    SchoolRegistrationCreate,
    normalize_phone,
)
from registration_service.core.exceptions import ConstraintViolation
from registration_service.services import lifecycle

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Registrations"])


def _created(registration) -> dict:
    return {
        "tracking_number": registration.tracking_number,
        "kind": registration.kind,
        "payment_status": registration.payment_status,
        "amount_due": registration.amount_due,
        "created_at": registration.created_at,
    }


@router.post(
    "/registrations/individual",
    response_model=RegistrationCreated,
    status_code=status.HTTP_201_CREATED,
)
def create_individual_registration(
    registration_in: IndividualRegistrationCreate,
    db: Session = Depends(get_db),
):
    """
    Register one participant at the fixed individual fee.

    A phone number can only hold one individual registration; a second
    attempt answers 409 with the existing tracking number.
    """
    registration = crud.individual_registration.create_with_tracking(db, obj_in=registration_in)
    return _created(registration)


@router.post(
    "/registrations/school",
    response_model=RegistrationCreated,
    status_code=status.HTTP_201_CREATED,
)
def create_school_registration(
    registration_in: SchoolRegistrationCreate,
    db: Session = Depends(get_db),
):
    """
    Register a school with its pupils. The amount due is the sum of the
    selected category fees; participant caps are checked before anything
    is saved.
    """
    registration = crud.school_registration.create_with_participants(db, obj_in=registration_in)
    return _created(registration)


@router.get("/registrations/recover", response_model=List[PhoneRecoveryItem])
@limiter.limit("5/minute")
def recover_tracking_numbers(
    request: Request,
    phone: str = Query(..., min_length=7),
    db: Session = Depends(get_db),
):
    """List the tracking numbers registered with a phone number."""
    try:
        phone_number = normalize_phone(phone)
    except ValueError as e:
        raise ConstraintViolation(str(e), field="phone")

    return [
        {
            "tracking_number": r.tracking_number,
            "kind": r.kind,
            "name": r.display_name,
            "payment_status": r.payment_status,
            "created_at": r.created_at,
        }
        for r in lifecycle.recover_by_phone(db, phone_number)
    ]


@router.get("/registrations/{tracking_number}", response_model=RegistrationStatus)
@limiter.limit("60/minute")
def get_registration_status(
    request: Request,
    tracking_number: str,
    db: Session = Depends(get_db),
):
    """
    Authoritative status of a registration. Ticket links only appear once
    payment is verified; otherwise the client shows a processing state.
    """
    registration = lifecycle.find_registration(db, tracking_number)
    return lifecycle.status_projection(registration)


@router.post("/registrations/{tracking_number}/attest-payment", response_model=RegistrationStatus)
def attest_payment(tracking_number: str, db: Session = Depends(get_db)):
    """
    Tell the organisers the bank transfer has been made. Safe to repeat.
    """
    registration = lifecycle.attest_payment(db, tracking_number)
    return lifecycle.status_projection(registration)


@router.post("/registrations/{tracking_number}/retry-payment", response_model=RegistrationStatus)
def retry_payment(tracking_number: str, db: Session = Depends(get_db)):
    """Reopen a registration whose gateway payment failed."""
    registration = lifecycle.retry_payment(db, tracking_number)
    return lifecycle.status_projection(registration)
