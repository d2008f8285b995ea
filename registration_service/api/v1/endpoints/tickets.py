# registration_service/api/v1/endpoints/tickets.py
import logging
from io import BytesIO
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from registration_service.db.session import get_db
from registration_service.schemas.ticket import (
    Certificate,
    CompanionTicketRequest,
    Ticket,
    TicketBundle,
)
from registration_service.services import lifecycle
from registration_service.services.certificate_service import get_certificate
from registration_service.services.rendering import (
    render_certificate_pdf,
    render_qr_png,
    render_ticket_pdf,
)
from registration_service.services.ticket_management.ticket_service import ticket_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tickets"])


@router.get("/registrations/{tracking_number}/ticket", response_model=Ticket)
def get_ticket(
    tracking_number: str,
    holder: Optional[str] = Query(None, description="Holder key, defaults to the main ticket"),
    db: Session = Depends(get_db),
):
    """
    The registrant's ticket (individual) or group pass (school), minted on
    first access once payment is verified.
    """
    registration = lifecycle.find_registration(db, tracking_number)
    return ticket_service.issue_ticket(db, registration, holder)


@router.get("/registrations/{tracking_number}/tickets", response_model=TicketBundle)
def get_all_tickets(tracking_number: str, db: Session = Depends(get_db)):
    """Every ticket of a registration: group pass and one per participant for schools."""
    registration = lifecycle.find_registration(db, tracking_number)
    tickets = ticket_service.issue_all(db, registration)
    return {"tracking_number": registration.tracking_number, "tickets": tickets}


@router.post(
    "/registrations/{tracking_number}/companion-tickets",
    response_model=Ticket,
    status_code=status.HTTP_201_CREATED,
)
def add_companion_ticket(
    tracking_number: str,
    companion_in: CompanionTicketRequest,
    db: Session = Depends(get_db),
):
    """Teacher or visitor ticket for a school, limited per category."""
    registration = lifecycle.find_registration(db, tracking_number)
    return ticket_service.add_companion(db, registration, companion_in)


@router.get("/tickets/{ticket_number}/pdf")
def download_ticket_pdf(ticket_number: str, db: Session = Depends(get_db)):
    _, ticket = ticket_service.find_ticket(db, ticket_number)
    # Re-check eligibility: a ticket number alone must not bypass verification
    registration = ticket.registration
    ticket_service.issue_ticket(db, registration, ticket.holder_key)

    pdf = render_ticket_pdf(ticket, registration)
    return StreamingResponse(
        BytesIO(pdf),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={ticket.ticket_number}.pdf"},
    )


@router.get("/tickets/{ticket_number}/qr.png")
def download_ticket_qr(ticket_number: str, db: Session = Depends(get_db)):
    _, ticket = ticket_service.find_ticket(db, ticket_number)
    ticket_service.issue_ticket(db, ticket.registration, ticket.holder_key)

    return StreamingResponse(BytesIO(render_qr_png(ticket.qr_payload)), media_type="image/png")


@router.get("/registrations/{tracking_number}/certificate", response_model=Certificate)
def get_certificate_data(
    tracking_number: str,
    holder: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """
    Participation certificate data. Only available after the holder's
    ticket was checked in at the event.
    """
    registration = lifecycle.find_registration(db, tracking_number)
    return get_certificate(db, registration, holder)


@router.get("/registrations/{tracking_number}/certificate.pdf")
def download_certificate_pdf(
    tracking_number: str,
    holder: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    registration = lifecycle.find_registration(db, tracking_number)
    certificate = get_certificate(db, registration, holder)
    return StreamingResponse(
        BytesIO(render_certificate_pdf(certificate)),
        media_type="application/pdf",
        headers={
            "Content-Disposition": (
                f"attachment; filename=certificate_{certificate['ticket_number']}.pdf"
            )
        },
    )
