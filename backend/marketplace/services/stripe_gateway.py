"""Stripe payment gateway client.

Talks to the Stripe REST API directly with httpx and verifies webhook
signatures (``Stripe-Signature: t=<ts>,v1=<hex hmac-sha256>``). Instances
are immutable and handed to the operations that need them; there is no
module-level client.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..core.config import Settings

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """The gateway could not be reached or rejected the request."""


class WebhookSignatureError(Exception):
    """A webhook payload failed signature or timestamp checks."""


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    client_secret: str


class PaymentGateway(ABC):
    """Interface the payment flow depends on."""

    @abstractmethod
    def create_payment_intent(
        self,
        booking_id: str,
        amount: int,
        currency: str,
        metadata: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent:
        """Create an intent. Calls sharing ``idempotency_key`` are deduplicated by the gateway."""

    @abstractmethod
    def verify_webhook(self, payload: bytes, signature_header: Optional[str]) -> Dict[str, Any]:
        """Return the decoded event or raise WebhookSignatureError."""


class StripeGateway(PaymentGateway):
    # Network failures are retried once; the idempotency key makes that safe
    MAX_ATTEMPTS = 2

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str = "",
        api_base: str = "https://api.stripe.com",
        timeout: float = 10.0,
        webhook_tolerance: int = 300,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._webhook_tolerance = webhook_tolerance
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> "StripeGateway":
        return cls(
            secret_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            api_base=settings.STRIPE_API_BASE,
            timeout=settings.PAYMENT_GATEWAY_TIMEOUT,
            webhook_tolerance=settings.STRIPE_WEBHOOK_TOLERANCE,
            transport=transport,
        )

    def _post(self, path: str, data: Dict[str, str], idempotency_key: str) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self._secret_key}",
            "Idempotency-Key": idempotency_key,
        }
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            try:
                with httpx.Client(
                    base_url=self._api_base, timeout=self._timeout, transport=self._transport
                ) as client:
                    return client.post(path, data=data, headers=headers)
            except httpx.TransportError as exc:
                logger.warning(
                    "Stripe request %s failed on attempt %s/%s: %s",
                    path, attempt, self.MAX_ATTEMPTS, exc,
                )
                if attempt == self.MAX_ATTEMPTS:
                    raise GatewayError("Payment gateway unreachable") from exc
        raise GatewayError("Payment gateway unreachable")

    def create_payment_intent(
        self,
        booking_id: str,
        amount: int,
        currency: str,
        metadata: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent:
        if not self._secret_key:
            raise GatewayError("Payment gateway not configured")
        data = {
            "amount": str(int(amount)),
            "currency": currency.lower(),
            "automatic_payment_methods[enabled]": "true",
            "metadata[booking_id]": booking_id,
        }
        for key, value in (metadata or {}).items():
            data[f"metadata[{key}]"] = str(value)

        # One key per call: the internal retry reuses it, a later call gets a fresh one
        request_key = idempotency_key or f"booking-{booking_id}-{uuid.uuid4().hex}"
        response = self._post("/v1/payment_intents", data, idempotency_key=request_key)
        if response.status_code >= 400:
            try:
                message = response.json().get("error", {}).get("message")
            except ValueError:
                message = None
            logger.error(
                "Stripe rejected payment intent for booking %s: %s %s",
                booking_id, response.status_code, message,
            )
            raise GatewayError(message or f"Payment gateway returned {response.status_code}")

        body = response.json()
        intent_id = body.get("id")
        client_secret = body.get("client_secret")
        if not intent_id or not client_secret:
            raise GatewayError("Invalid Stripe response")
        return PaymentIntent(id=intent_id, client_secret=client_secret)

    def verify_webhook(
        self, payload: bytes, signature_header: Optional[str], now: Optional[float] = None
    ) -> Dict[str, Any]:
        """Check the signature header and return the decoded event."""
        if not self._webhook_secret:
            raise WebhookSignatureError("Webhook secret not configured")
        if not signature_header:
            raise WebhookSignatureError("Missing Stripe signature")

        timestamp = None
        signatures = []
        for part in signature_header.split(","):
            key, _, value = part.strip().partition("=")
            if key == "t":
                timestamp = value
            elif key == "v1":
                signatures.append(value)
        if timestamp is None or not signatures:
            raise WebhookSignatureError("Malformed Stripe signature header")
        try:
            ts = int(timestamp)
        except ValueError as exc:
            raise WebhookSignatureError("Malformed Stripe signature timestamp") from exc

        signed = timestamp.encode("utf-8") + b"." + payload
        expected = hmac.new(self._webhook_secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
        if not any(hmac.compare_digest(expected, sig) for sig in signatures):
            raise WebhookSignatureError("Invalid webhook signature")

        current = time.time() if now is None else now
        if self._webhook_tolerance and abs(current - ts) > self._webhook_tolerance:
            raise WebhookSignatureError("Webhook timestamp outside tolerance")

        try:
            event = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise WebhookSignatureError("Invalid webhook payload") from exc
        if not isinstance(event, dict):
            raise WebhookSignatureError("Invalid webhook payload")
        return event
