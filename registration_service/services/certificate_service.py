# registration_service/services/certificate_service.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from registration_service.core.config import settings
from registration_service.core.exceptions import NotYetEligible
from registration_service.models.registration import IndividualRegistration
from registration_service.services.ticket_management.ticket_service import ticket_service

logger = logging.getLogger(__name__)

NOT_CHECKED_IN_MESSAGE = (
    "Certificates are only available for participants who have checked in at the event."
)


def certificate_for_ticket(ticket, registration) -> dict:
    """Certificate data is a read-only projection of a checked-in ticket."""
    if not ticket.checked_in:
        raise NotYetEligible(
            f"{NOT_CHECKED_IN_MESSAGE} Ticket {ticket.ticket_number} has not been checked in.",
            ticket_number=ticket.ticket_number,
            tracking_number=registration.tracking_number,
        )

    data = {
        "participant_name": ticket.holder_name,
        "tracking_number": registration.tracking_number,
        "ticket_number": ticket.ticket_number,
        "event_name": settings.EVENT_NAME,
        "event_date": settings.EVENT_DATE,
        "checked_in_at": ticket.checked_in_at,
        "school_name": None,
        "gender": None,
        "state": None,
        "lga": None,
    }
    if isinstance(registration, IndividualRegistration):
        data.update(gender=registration.gender, state=registration.state, lga=registration.lga)
    else:
        data["school_name"] = registration.school_name
    return data


def get_certificate(db: Session, registration, holder_key: Optional[str] = None) -> dict:
    """
    Certificate for one holder of a registration. A holder with no ticket yet
    cannot have checked in, so that is reported the same way as an unused ticket.
    """
    holder_key = (holder_key or ticket_service.default_holder(registration)).upper()
    ticket = ticket_service.crud_for(registration).get_for_holder(
        db, registration_id=registration.id, holder_key=holder_key
    )
    if ticket is None:
        raise NotYetEligible(
            f"{NOT_CHECKED_IN_MESSAGE} Registration {registration.tracking_number} "
            f"has no checked-in ticket for holder '{holder_key}'.",
            tracking_number=registration.tracking_number,
        )
    return certificate_for_ticket(ticket, registration)
