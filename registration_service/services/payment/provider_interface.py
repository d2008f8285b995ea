# registration_service/services/payment/provider_interface.py
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from enum import Enum


class TransactionStatus(str, Enum):
    """Standardized transaction status."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class WebhookEventType(str, Enum):
    """Standardized webhook event types."""
    CHARGE_SUCCEEDED = "charge.success"
    CHARGE_FAILED = "charge.failed"
    UNKNOWN = "unknown"


@dataclass
class InitializeTransactionParams:
    """Parameters for starting a hosted checkout."""
    reference: str
    amount: int  # In smallest currency unit (kobo)
    currency: str
    email: str
    callback_url: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TransactionInitResult:
    reference: str
    authorization_url: str
    access_code: Optional[str] = None


@dataclass
class TransactionVerification:
    """Gateway's answer about one transaction reference."""
    reference: str
    status: TransactionStatus
    amount: int  # In smallest currency unit (kobo)
    currency: str
    transaction_id: Optional[str] = None
    gateway_response: Optional[str] = None
    raw: Optional[Dict[str, Any]] = None


@dataclass
class WebhookEvent:
    """Standardized webhook event."""
    event_id: str
    event_type: WebhookEventType
    provider_event_type: str
    data: Dict[str, Any]
    raw_payload: Dict[str, Any]


class PaymentProviderInterface(ABC):
    """
    Interface every payment gateway adapter implements, so the lifecycle code
    never talks to a gateway SDK directly.
    """

    @property
    @abstractmethod
    def code(self) -> str:
        """Provider code identifier (e.g., 'paystack')."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name (e.g., 'Paystack')."""
        pass

    @abstractmethod
    async def initialize_transaction(
        self, params: InitializeTransactionParams
    ) -> TransactionInitResult:
        """Create a hosted checkout and return the URL to redirect the payer to."""
        pass

    @abstractmethod
    async def verify_transaction(self, reference: str) -> TransactionVerification:
        """Ask the gateway for the final outcome of a transaction."""
        pass

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        pass

    @abstractmethod
    def parse_webhook_event(self, payload: bytes) -> WebhookEvent:
        pass

    @abstractmethod
    def to_verification(self, data: Dict[str, Any]) -> TransactionVerification:
        """Map a gateway transaction object (from verify or a webhook) to a verification."""
        pass
