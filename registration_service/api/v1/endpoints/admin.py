# registration_service/api/v1/endpoints/admin.py
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from registration_service import crud
from registration_service.api import deps
from registration_service.db.session import get_db
from registration_service.models.registration import PaymentStatus
from registration_service.schemas.registration import (
    AdminRegistrationPage,
    AdminStats,
    AdminVerificationRequest,
    RegistrationStatus,
)
from registration_service.schemas.ticket import CheckInRequest, Ticket, TicketValidation
from registration_service.schemas.token import TokenPayload
from registration_service.services import lifecycle
from registration_service.services.export import export_registrations_csv
from registration_service.services.ticket_management.ticket_service import ticket_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

StatusFilter = Literal["verified", "pending", "unpaid", "failed"]
Kind = Literal["individual", "school"]


def _admin_row(registration) -> dict:
    return {
        "tracking_number": registration.tracking_number,
        "kind": registration.kind,
        "name": registration.display_name,
        "phone": registration.contact_phone,
        "email": registration.email,
        "payment_status": registration.payment_status,
        "admin_verified": bool(registration.admin_verified),
        "amount_due": registration.amount_due,
        "payment_method": registration.payment_method,
        "created_at": registration.created_at,
    }


@router.get("/registrations", response_model=AdminRegistrationPage)
def list_registrations(
    kind: Kind = "individual",
    status_filter: Optional[StatusFilter] = Query(None, alias="status"),
    search: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_admin: TokenPayload = Depends(deps.get_current_admin),
):
    """
    Registrations for the admin dashboard.

    `status`: verified (paid and verified), pending (awaiting verification),
    unpaid, failed.
    """
    registry = crud.individual_registration if kind == "individual" else crud.school_registration
    items, total = registry.search(
        db, status_filter=status_filter, search=search, skip=skip, limit=limit
    )
    return {"items": [_admin_row(r) for r in items], "total": total}


@router.get("/registrations/export.csv")
def export_registrations(
    kind: Kind = "individual",
    status_filter: Optional[StatusFilter] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_admin: TokenPayload = Depends(deps.get_current_admin),
):
    output = export_registrations_csv(db, kind=kind, status_filter=status_filter)
    suffix = f"_{status_filter}" if status_filter else ""
    return StreamingResponse(
        output,
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={kind}_registrations{suffix}.csv"
        },
    )


@router.post("/registrations/{tracking_number}/verify", response_model=RegistrationStatus)
def verify_registration_payment(
    tracking_number: str,
    verification_in: AdminVerificationRequest,
    db: Session = Depends(get_db),
    current_admin: TokenPayload = Depends(deps.get_current_admin),
):
    """
    Approve or reject an attested bank transfer. Only registrations awaiting
    verification change; repeated clicks return the current state.
    """
    registration = lifecycle.verify_payment(
        db, tracking_number, verification_in.approve, operator=current_admin.sub
    )
    return lifecycle.status_projection(registration)


@router.get("/tickets/{code}", response_model=TicketValidation)
def validate_ticket(
    code: str,
    db: Session = Depends(get_db),
    current_admin: TokenPayload = Depends(deps.get_current_admin),
):
    """Show who a scanned ticket belongs to and whether it can be checked in."""
    return ticket_service.validate(db, code)


@router.post("/check-in", response_model=Ticket)
def check_in_ticket(
    check_in_in: CheckInRequest,
    db: Session = Depends(get_db),
    current_admin: TokenPayload = Depends(deps.get_current_admin),
):
    """
    Check a ticket in by ticket number or scanned QR token. The operator is
    the authenticated admin. A second scan of the same ticket answers 409
    `already_checked_in`; an unverified registration answers 409 `not_verified`.
    """
    return ticket_service.check_in(db, check_in_in.code, operator=current_admin.sub)


@router.get("/stats", response_model=AdminStats)
def get_stats(
    db: Session = Depends(get_db),
    current_admin: TokenPayload = Depends(deps.get_current_admin),
):
    stats = {
        "total": 0,
        "verified": 0,
        "awaiting_verification": 0,
        "unpaid": 0,
        "failed": 0,
        "checked_in": 0,
        "revenue": 0,
    }
    for registry in (crud.individual_registration, crud.school_registration):
        counts = registry.count_by_status(db)
        stats["total"] += sum(counts.values())
        stats["awaiting_verification"] += counts[PaymentStatus.AWAITING_VERIFICATION]
        stats["unpaid"] += counts[PaymentStatus.PENDING]
        stats["failed"] += counts[PaymentStatus.FAILED]
        stats["verified"] += registry.count_verified(db)
        stats["revenue"] += registry.verified_revenue(db)
    for ticket_crud in (crud.individual_ticket, crud.ticket):
        stats["checked_in"] += ticket_crud.count_checked_in(db)
    return stats
