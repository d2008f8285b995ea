# registration_service/services/ticket_management/ticket_service.py
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from registration_service import crud
from registration_service.core.config import settings
from registration_service.core.exceptions import (
    AlreadyCheckedIn,
    ConstraintViolation,
    NotEligible,
    NotFound,
    NotVerified,
)
from registration_service.models.registration import IndividualRegistration, Registration
from registration_service.models.ticket import TicketRole, build_ticket_number
from registration_service.schemas.ticket import CompanionTicketRequest
from registration_service.services import lifecycle
from registration_service.services.ticket_management.qr_signing import (
    is_jwt_qr,
    sign_ticket_qr,
    verify_ticket_qr,
)

logger = logging.getLogger(__name__)

MAIN_HOLDER = "MAIN"
GROUP_HOLDER = "GROUP"


class TicketService:
    """Issues tickets lazily and checks them in."""

    def crud_for(self, registration):
        if isinstance(registration, IndividualRegistration):
            return crud.individual_ticket
        return crud.ticket

    def _require_access(self, registration) -> None:
        if not lifecycle.has_access(registration):
            raise NotEligible(
                f"Registration {registration.tracking_number} is still being processed "
                f"(payment status: {registration.payment_status}). Tickets become "
                f"available once payment is verified.",
                tracking_number=registration.tracking_number,
                payment_status=registration.payment_status,
            )

    def default_holder(self, registration) -> str:
        return MAIN_HOLDER if isinstance(registration, IndividualRegistration) else GROUP_HOLDER

    def _resolve_holder(self, registration, holder_key: str) -> Tuple[str, str, Optional[str]]:
        """Map a holder key to (holder name, role, category id)."""
        if isinstance(registration, IndividualRegistration):
            if holder_key == MAIN_HOLDER:
                return registration.full_name, TicketRole.MAIN, None
        elif holder_key == GROUP_HOLDER:
            return registration.school_name, TicketRole.GROUP, None
        else:
            for participant in registration.participants:
                if participant.holder_key == holder_key:
                    return participant.name, TicketRole.PARTICIPANT, participant.category_id

        raise NotFound(
            f"Registration {registration.tracking_number} has no ticket holder '{holder_key}'"
        )

    def _mint(self, db: Session, registration, holder_key: str, holder_name: str,
              role: str, category_id: Optional[str] = None):
        ticket_crud = self.crud_for(registration)
        ticket_number = build_ticket_number(registration.tracking_number, holder_key)
        fields = dict(
            registration_id=registration.id,
            holder_key=holder_key,
            holder_name=holder_name,
            role=role,
            ticket_number=ticket_number,
            qr_payload=sign_ticket_qr(
                ticket_number, registration.tracking_number, holder_name
            ),
        )
        if category_id is not None:
            fields["category_id"] = category_id

        ticket = ticket_crud.create_once(db, **fields)
        logger.info(f"Ticket {ticket.ticket_number} issued for {registration.tracking_number}")
        return ticket

    def issue_ticket(self, db: Session, registration, holder_key: Optional[str] = None):
        """
        Return the ticket for one holder, minting it on first access.

        Never mints a second ticket for the same (registration, holder).
        """
        self._require_access(registration)
        holder_key = (holder_key or self.default_holder(registration)).upper()

        existing = self.crud_for(registration).get_for_holder(
            db, registration_id=registration.id, holder_key=holder_key
        )
        if existing is not None:
            return existing

        holder_name, role, category_id = self._resolve_holder(registration, holder_key)
        return self._mint(db, registration, holder_key, holder_name, role, category_id)

    def issue_all(self, db: Session, registration) -> List:
        """Main ticket for an individual; group pass plus one per participant for a school."""
        self._require_access(registration)
        tickets = [self.issue_ticket(db, registration)]
        if isinstance(registration, Registration):
            for participant in registration.participants:
                tickets.append(self.issue_ticket(db, registration, participant.holder_key))
            issued = {t.id for t in tickets}
            for ticket in self.crud_for(registration).get_by_registration(db, registration.id):
                if ticket.id not in issued:
                    tickets.append(ticket)
        return tickets

    def add_companion(self, db: Session, registration, obj_in: CompanionTicketRequest):
        """
        Teacher or visitor ticket for a school, counted against its category.
        """
        if not isinstance(registration, Registration):
            raise ConstraintViolation(
                f"Registration {registration.tracking_number} is an individual "
                f"registration; companion tickets are for schools only",
                field="tracking_number",
            )
        self._require_access(registration)

        selected = {selection.category_id for selection in registration.category_selections}
        if obj_in.category_id not in selected:
            raise ConstraintViolation(
                f"Category '{obj_in.category_id}' is not part of registration "
                f"{registration.tracking_number}",
                field="category_id",
            )

        cap = settings.COMPANION_TICKETS_PER_CATEGORY
        registration_id, tracking_number = registration.id, registration.tracking_number
        sequence = crud.ticket.count_by_role(db, registration_id=registration_id, role=obj_in.role)
        while True:
            sequence += 1
            holder_key = f"{obj_in.role.upper()}-{sequence}"
            if crud.ticket.get_for_holder(
                db, registration_id=registration_id, holder_key=holder_key
            ) is not None:
                continue

            # The slot and the ticket commit together; a lost holder key rolls both back
            if not crud.school_registration.claim_companion_slot(
                db, registration_id=registration_id, category_id=obj_in.category_id, cap=cap
            ):
                db.commit()
                raise ConstraintViolation(
                    f"Registration {tracking_number} already has the maximum of {cap} "
                    f"companion tickets for category '{obj_in.category_id}'",
                    field="category_id",
                )
            ticket = self._mint(
                db, registration, holder_key, obj_in.name.strip(), obj_in.role, obj_in.category_id
            )
            if ticket.holder_name == obj_in.name.strip() and ticket.category_id == obj_in.category_id:
                return ticket

    def resolve_code(self, code: str) -> str:
        """Accept a printed ticket number or a scanned QR token."""
        code = code.strip()
        if is_jwt_qr(code):
            claims = verify_ticket_qr(code)
            if not claims or "tn" not in claims:
                raise NotFound("QR code could not be verified as a ticket")
            if claims.get("eid") != settings.EVENT_ID:
                raise NotFound(
                    f"Ticket {claims['tn']} is for event '{claims.get('eid')}', "
                    f"not '{settings.EVENT_ID}'"
                )
            return claims["tn"]
        return code.upper()

    def find_ticket(self, db: Session, code: str):
        """Return (crud, ticket) for a ticket number or QR token."""
        ticket_number = self.resolve_code(code)
        for ticket_crud in (crud.individual_ticket, crud.ticket):
            ticket = ticket_crud.get_by_number(db, ticket_number)
            if ticket is not None:
                return ticket_crud, ticket
        raise NotFound(f"Ticket {ticket_number} does not exist")

    def check_in(self, db: Session, code: str, operator: str):
        """
        One-way check-in. The conditional UPDATE decides; the follow-up read
        only explains a refusal.
        """
        ticket_crud, ticket = self.find_ticket(db, code)
        ticket_id, ticket_number = ticket.id, ticket.ticket_number

        if ticket_crud.check_in(db, ticket_id, operator):
            ticket = ticket_crud.reload(db, ticket_id)
            logger.info(f"Ticket {ticket_number} checked in by {operator}")
            return ticket

        ticket = ticket_crud.reload(db, ticket_id)
        if ticket is None:
            raise NotFound(f"Ticket {ticket_number} does not exist")

        if ticket.checked_in:
            logger.warning(
                f"Ticket {ticket_number} rejected: already checked in at "
                f"{ticket.checked_in_at} by {ticket.checked_in_by}"
            )
            raise AlreadyCheckedIn(
                f"Ticket {ticket_number} was already checked in at "
                f"{ticket.checked_in_at.isoformat() if ticket.checked_in_at else 'unknown time'}",
                ticket_number=ticket_number,
                checked_in_at=ticket.checked_in_at.isoformat() if ticket.checked_in_at else None,
                checked_in_by=ticket.checked_in_by,
            )

        registration = ticket.registration
        db.refresh(registration)
        logger.warning(
            f"Ticket {ticket_number} rejected: registration {registration.tracking_number} "
            f"is {registration.payment_status}, verified={registration.admin_verified}"
        )
        raise NotVerified(
            f"Ticket {ticket_number}: payment for registration "
            f"{registration.tracking_number} has not been verified",
            ticket_number=ticket_number,
            tracking_number=registration.tracking_number,
        )

    def validate(self, db: Session, code: str) -> dict:
        """Staff preview of a scanned ticket, without checking it in."""
        _, ticket = self.find_ticket(db, code)
        registration = ticket.registration
        reason = None
        if ticket.checked_in:
            reason = f"Already checked in at {ticket.checked_in_at.isoformat()}"
        elif not lifecycle.has_access(registration):
            reason = "Payment not verified"
        return {
            "ticket": ticket,
            "tracking_number": registration.tracking_number,
            "registration_name": registration.display_name,
            "payment_status": registration.payment_status,
            "admin_verified": bool(registration.admin_verified),
            "can_check_in": reason is None,
            "reason": reason,
        }


ticket_service = TicketService()
