# registration_service/models/__init__.py
# Import all models so SQLAlchemy can resolve relationships and Alembic
# sees the full metadata.

from registration_service.db.base_class import Base
from registration_service.models.category import Category
from registration_service.models.registration import (
    IndividualRegistration,
    Participant,
    PaymentStatus,
    Registration,
    RegistrationCategory,
)
from registration_service.models.ticket import IndividualTicket, Ticket, TicketRole
from registration_service.models.payment_record import (
    PaymentMethod,
    PaymentRecord,
    PaymentRecordStatus,
)
from registration_service.models.payment_webhook_event import PaymentWebhookEvent
