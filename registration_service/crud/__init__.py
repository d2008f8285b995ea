# registration_service/crud/__init__.py

from .crud_category import category
from .crud_payment_record import payment_record
from .crud_registration import individual_registration, school_registration
from .crud_ticket import individual_ticket, ticket
from .crud_webhook_event import webhook_event
