# registration_service/services/payment/providers/paystack_provider.py
"""
Paystack adapter over its REST API.

Amounts cross the wire in kobo. Every call is bounded by the configured
timeout; a timeout surfaces as GatewayTimeout so callers can retry.
"""
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from registration_service.core.exceptions import GatewayError, GatewayTimeout
from registration_service.services.payment.provider_interface import (
    InitializeTransactionParams,
    PaymentProviderInterface,
    TransactionInitResult,
    TransactionStatus,
    TransactionVerification,
    WebhookEvent,
    WebhookEventType,
)

logger = logging.getLogger(__name__)

# Paystack transaction states that have not reached an outcome yet
IN_PROGRESS_STATUSES = {"ongoing", "pending", "processing", "queued"}


@dataclass
class PaystackConfig:
    secret_key: str
    base_url: str = "https://api.paystack.co"
    timeout: float = 10.0
    # Injected in tests (httpx.MockTransport)
    transport: Optional[httpx.AsyncBaseTransport] = None


class PaystackProvider(PaymentProviderInterface):
    def __init__(self, config: PaystackConfig):
        self.config = config

    @property
    def code(self) -> str:
        return "paystack"

    @property
    def name(self) -> str:
        return "Paystack"

    async def _request(
        self, method: str, path: str, json_body: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.config.secret_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                transport=self.config.transport,
                headers=headers,
            ) as client:
                response = await client.request(method, path, json=json_body)
        except httpx.TimeoutException as e:
            logger.warning(f"Paystack {method} {path} timed out: {e}")
            raise GatewayTimeout(
                f"Payment gateway did not respond within {self.config.timeout}s ({path})"
            )
        except httpx.HTTPError as e:
            logger.warning(f"Paystack {method} {path} failed: {e}")
            raise GatewayError(f"Could not reach payment gateway: {e}", retryable=True)

        try:
            body = response.json()
        except ValueError:
            raise GatewayError(
                f"Payment gateway returned a non-JSON response (HTTP {response.status_code})",
                retryable=response.status_code >= 500,
            )

        if response.status_code >= 400 or not body.get("status"):
            message = body.get("message") or f"HTTP {response.status_code}"
            logger.warning(f"Paystack {method} {path} rejected: {message}")
            raise GatewayError(
                f"Payment gateway rejected the request: {message}",
                retryable=response.status_code >= 500,
            )
        return body

    async def initialize_transaction(
        self, params: InitializeTransactionParams
    ) -> TransactionInitResult:
        payload: Dict[str, Any] = {
            "email": params.email,
            "amount": params.amount,
            "currency": params.currency,
            "reference": params.reference,
            "metadata": params.metadata,
        }
        if params.callback_url:
            payload["callback_url"] = params.callback_url

        body = await self._request("POST", "/transaction/initialize", payload)
        data = body.get("data") or {}
        logger.info(f"Paystack transaction {params.reference} initialized")
        return TransactionInitResult(
            reference=data.get("reference", params.reference),
            authorization_url=data["authorization_url"],
            access_code=data.get("access_code"),
        )

    async def verify_transaction(self, reference: str) -> TransactionVerification:
        body = await self._request("GET", f"/transaction/verify/{reference}")
        return self.to_verification(body.get("data") or {})

    def to_verification(self, data: Dict[str, Any]) -> TransactionVerification:
        raw_status = (data.get("status") or "").lower()
        if raw_status == "success":
            status = TransactionStatus.SUCCEEDED
        elif raw_status in IN_PROGRESS_STATUSES:
            status = TransactionStatus.PENDING
        else:
            status = TransactionStatus.FAILED

        return TransactionVerification(
            reference=data.get("reference", ""),
            status=status,
            amount=int(data.get("amount") or 0),
            currency=data.get("currency") or "NGN",
            transaction_id=str(data["id"]) if data.get("id") is not None else None,
            gateway_response=data.get("gateway_response"),
            raw=data,
        )

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Paystack signs the raw body with HMAC-SHA512 of the secret key."""
        expected = hmac.new(
            self.config.secret_key.encode("utf-8"), payload, hashlib.sha512
        ).hexdigest()
        return hmac.compare_digest(expected, signature or "")

    def parse_webhook_event(self, payload: bytes) -> WebhookEvent:
        body = json.loads(payload)
        event_name = body.get("event", "")
        data = body.get("data") or {}
        try:
            event_type = WebhookEventType(event_name)
        except ValueError:
            event_type = WebhookEventType.UNKNOWN

        # Paystack sends no event id; the transaction id plus event name is stable across redeliveries
        event_id = f"{event_name}:{data.get('id') or data.get('reference')}"
        return WebhookEvent(
            event_id=event_id,
            event_type=event_type,
            provider_event_type=event_name,
            data=data,
            raw_payload=body,
        )
