# registration_service/services/payment/provider_factory.py
import logging
from typing import Dict, List
from functools import lru_cache

from registration_service.core.config import settings
from registration_service.core.exceptions import GatewayUnavailable
from .provider_interface import PaymentProviderInterface
from .providers.paystack_provider import PaystackProvider, PaystackConfig

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "paystack"


class PaymentProviderFactory:
    """
    Holds the payment providers that are configured. A provider without
    credentials is simply absent, and callers fall back to bank transfer.
    """

    def __init__(self):
        self._providers: Dict[str, PaymentProviderInterface] = {}
        self._initialize_providers()

    def _initialize_providers(self) -> None:
        if settings.PAYSTACK_SECRET_KEY:
            config = PaystackConfig(
                secret_key=settings.PAYSTACK_SECRET_KEY,
                base_url=settings.PAYSTACK_BASE_URL,
                timeout=settings.PAYSTACK_TIMEOUT_SECONDS,
            )
            self._providers["paystack"] = PaystackProvider(config)
            logger.info("Paystack payment provider initialized")
        else:
            logger.warning(
                "Paystack provider not initialized: PAYSTACK_SECRET_KEY is not set, "
                "registrations will use manual bank transfer"
            )

    def get_provider(self, code: str = DEFAULT_PROVIDER) -> PaymentProviderInterface:
        """
        Raises:
            GatewayUnavailable: If the provider is not configured
        """
        provider = self._providers.get(code)
        if not provider:
            raise GatewayUnavailable(
                f"Payment gateway '{code}' is not configured; pay by bank transfer "
                f"and confirm the payment instead"
            )
        return provider

    def list_available_providers(self) -> List[str]:
        return list(self._providers)


@lru_cache()
def get_provider_factory() -> PaymentProviderFactory:
    return PaymentProviderFactory()


def get_payment_provider(code: str = DEFAULT_PROVIDER) -> PaymentProviderInterface:
    return get_provider_factory().get_provider(code)
