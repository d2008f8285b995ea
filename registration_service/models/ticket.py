# registration_service/models/ticket.py
from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Text,
    UniqueConstraint,
    func,
    false,
)
from sqlalchemy.orm import relationship
from registration_service.db.base_class import Base
import uuid


class TicketRole:
    MAIN = "main"  # Individual registrant
    GROUP = "group"  # School group pass
    PARTICIPANT = "participant"
    TEACHER = "teacher"
    VISITOR = "visitor"


def build_ticket_number(tracking_number: str, holder_key: str) -> str:
    """Ticket numbers are a pure function of the owning tracking number and holder."""
    return f"TK-{tracking_number}-{holder_key}".upper()


class TicketMixin:
    """Columns shared by group and individual tickets."""

    # MAIN, GROUP, P<participant>, TEACHER-<n>, VISITOR-<n>
    holder_key = Column(String(64), nullable=False)
    holder_name = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False)

    ticket_number = Column(String(96), unique=True, nullable=False, index=True)
    qr_payload = Column(Text, nullable=False)

    # Check-in information, written once by a single conditional UPDATE
    checked_in = Column(Boolean, default=False, server_default=false(), nullable=False)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    checked_in_by = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Ticket(TicketMixin, Base):
    """Tickets issued against a school registration."""
    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint("registration_id", "holder_key", name="uq_ticket_holder"),
    )

    id = Column(
        String, primary_key=True, default=lambda: f"tkt_{uuid.uuid4().hex[:12]}"
    )
    registration_id = Column(
        String, ForeignKey("registrations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id = Column(String, ForeignKey("categories.id"), nullable=True)

    registration = relationship("Registration", back_populates="tickets")
    category = relationship("Category")


class IndividualTicket(TicketMixin, Base):
    __tablename__ = "individual_tickets"
    __table_args__ = (
        UniqueConstraint("registration_id", "holder_key", name="uq_individual_ticket_holder"),
    )

    id = Column(
        String, primary_key=True, default=lambda: f"itk_{uuid.uuid4().hex[:12]}"
    )
    registration_id = Column(
        String,
        ForeignKey("individual_registrations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    registration = relationship("IndividualRegistration", back_populates="tickets")

    @property
    def category_id(self):
        return None
