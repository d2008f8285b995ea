# registration_service/crud/crud_ticket.py
from datetime import datetime, timezone
from typing import List

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from registration_service.models.registration import (
    IndividualRegistration,
    PaymentStatus,
    Registration,
)
from registration_service.models.ticket import IndividualTicket, Ticket


class CRUDTicket:
    """CRUD operations for one ticket table and the registration table that owns it."""

    def __init__(self, model, owner_model):
        self.model = model
        self.owner_model = owner_model

    def get(self, db: Session, ticket_id: str):
        return db.query(self.model).filter(self.model.id == ticket_id).first()

    def get_by_number(self, db: Session, ticket_number: str):
        return (
            db.query(self.model)
            .filter(self.model.ticket_number == ticket_number.strip().upper())
            .first()
        )

    def get_for_holder(self, db: Session, *, registration_id: str, holder_key: str):
        return (
            db.query(self.model)
            .filter(
                and_(
                    self.model.registration_id == registration_id,
                    self.model.holder_key == holder_key,
                )
            )
            .first()
        )

    def get_by_registration(self, db: Session, registration_id: str) -> List:
        return (
            db.query(self.model)
            .filter(self.model.registration_id == registration_id)
            .order_by(self.model.created_at, self.model.holder_key)
            .all()
        )

    def count_by_role(self, db: Session, *, registration_id: str, role: str) -> int:
        return (
            db.query(self.model)
            .filter(and_(self.model.registration_id == registration_id, self.model.role == role))
            .count()
        )

    def count_checked_in(self, db: Session) -> int:
        return db.query(self.model).filter(self.model.checked_in.is_(True)).count()

    def create_once(self, db: Session, **fields):
        """
        Insert a ticket unless one already exists for (registration, holder).

        The unique constraint on (registration_id, holder_key) decides races:
        the loser rolls back and returns the winner's row.
        """
        db_obj = self.model(**fields)
        db.add(db_obj)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            existing = self.get_for_holder(
                db,
                registration_id=fields["registration_id"],
                holder_key=fields["holder_key"],
            )
            if existing is None:
                raise
            return existing
        db.refresh(db_obj)
        return db_obj

    def check_in(self, db: Session, ticket_id: str, checked_in_by: str) -> bool:
        """
        Check in a ticket using one atomic UPDATE.

        The row only changes while the ticket is unused and its registration is
        paid and verified. Returns True when this call performed the check-in.
        """
        owner_eligible = (
            select(self.owner_model.id)
            .where(
                and_(
                    self.owner_model.id == self.model.registration_id,
                    self.owner_model.payment_status == PaymentStatus.PAID,
                    self.owner_model.admin_verified.is_(True),
                )
            )
            .correlate(self.model.__table__)
            .exists()
        )

        now = datetime.now(timezone.utc)
        result = db.execute(
            update(self.model)
            .where(
                and_(
                    self.model.id == ticket_id,
                    self.model.checked_in.is_(False),
                    owner_eligible,
                )
            )
            .values(checked_in=True, checked_in_at=now, checked_in_by=checked_in_by)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount == 1

    def reload(self, db: Session, ticket_id: str):
        """Re-read a ticket, discarding whatever this session had cached."""
        return (
            db.query(self.model)
            .populate_existing()
            .filter(self.model.id == ticket_id)
            .first()
        )


ticket = CRUDTicket(Ticket, Registration)
individual_ticket = CRUDTicket(IndividualTicket, IndividualRegistration)
