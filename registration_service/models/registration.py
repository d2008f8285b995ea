# registration_service/models/registration.py
from sqlalchemy import (
    Column,
    String,
    Integer,
    Boolean,
    Text,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    func,
    false,
)
from sqlalchemy.orm import relationship
from registration_service.db.base_class import Base
import uuid


class PaymentStatus:
    PENDING = "pending"
    AWAITING_VERIFICATION = "awaiting_verification"
    PAID = "paid"
    FAILED = "failed"

    ALL = (PENDING, AWAITING_VERIFICATION, PAID, FAILED)


class RegistrationLifecycleMixin:
    """Identity and status columns shared by both registration kinds."""

    # Assigned once at creation, never reassigned
    tracking_number = Column(String(32), unique=True, nullable=False, index=True)

    payment_status = Column(
        String(32),
        default=PaymentStatus.PENDING,
        server_default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )
    admin_verified = Column(Boolean, default=False, server_default=false(), nullable=False)
    amount_due = Column(Integer, nullable=False)  # Whole naira
    payment_method = Column(String(32), nullable=True)  # bank_transfer | gateway
    comments = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class IndividualRegistration(RegistrationLifecycleMixin, Base):
    __tablename__ = "individual_registrations"

    kind = "individual"

    id = Column(
        String, primary_key=True, default=lambda: f"ind_{uuid.uuid4().hex[:12]}"
    )

    full_name = Column(String(255), nullable=False)
    phone_number = Column(String(32), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=True)
    gender = Column(String(16), nullable=True)
    state = Column(String(64), nullable=True)
    lga = Column(String(128), nullable=True)

    tickets = relationship(
        "IndividualTicket", back_populates="registration", cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        return self.full_name

    @property
    def contact_phone(self) -> str:
        return self.phone_number


class Registration(RegistrationLifecycleMixin, Base):
    """A school registering a group of pupils across competition categories."""
    __tablename__ = "registrations"

    kind = "school"

    id = Column(
        String, primary_key=True, default=lambda: f"reg_{uuid.uuid4().hex[:12]}"
    )

    school_name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=False)
    contact_phone = Column(String(32), nullable=False, index=True)
    contact_email = Column(String(255), nullable=True)

    participants = relationship(
        "Participant", back_populates="registration", cascade="all, delete-orphan"
    )
    category_selections = relationship(
        "RegistrationCategory", back_populates="registration", cascade="all, delete-orphan"
    )
    tickets = relationship(
        "Ticket", back_populates="registration", cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        return self.school_name

    @property
    def email(self):
        return self.contact_email


class RegistrationCategory(Base):
    __tablename__ = "registration_categories"
    __table_args__ = (
        UniqueConstraint("registration_id", "category_id", name="uq_registration_category"),
    )

    id = Column(
        String, primary_key=True, default=lambda: f"rgc_{uuid.uuid4().hex[:12]}"
    )
    registration_id = Column(
        String, ForeignKey("registrations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id = Column(String, ForeignKey("categories.id"), nullable=False)
    # Fee snapshot at registration time
    fee = Column(Integer, nullable=False)
    companions_issued = Column(Integer, default=0, server_default="0", nullable=False)

    registration = relationship("Registration", back_populates="category_selections")
    category = relationship("Category")


class Participant(Base):
    __tablename__ = "participants"

    id = Column(
        String, primary_key=True, default=lambda: f"par_{uuid.uuid4().hex[:12]}"
    )
    registration_id = Column(
        String, ForeignKey("registrations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id = Column(String, ForeignKey("categories.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    class_name = Column("class", String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    registration = relationship("Registration", back_populates="participants")
    category = relationship("Category", back_populates="participants")

    @property
    def holder_key(self) -> str:
        return f"P{self.id.split('_')[-1].upper()}"
