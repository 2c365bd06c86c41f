import hashlib
import hmac
import json
import time
from urllib.parse import parse_qs

import httpx
import pytest

from marketplace.core.config import Settings
from marketplace.services.stripe_gateway import GatewayError, PaymentGateway, StripeGateway, WebhookSignatureError

WEBHOOK_SECRET = "whsec_unit"


def sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    ts = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode(), f"{ts}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def make_gateway(handler, **kwargs) -> StripeGateway:
    return StripeGateway(
        secret_key=kwargs.pop("secret_key", "sk_test_unit"),
        webhook_secret=WEBHOOK_SECRET,
        api_base="https://stripe.test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_create_payment_intent_posts_form_with_idempotency_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["headers"] = request.headers
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"id": "pi_123", "client_secret": "pi_123_secret"})

    gateway = make_gateway(handler)
    intent = gateway.create_payment_intent(
        "b-1", 2500, "USD", metadata={"owner_id": "7"}, idempotency_key="booking-b-1-attempt"
    )

    assert intent.id == "pi_123"
    assert intent.client_secret == "pi_123_secret"
    assert seen["path"] == "/v1/payment_intents"
    assert seen["headers"]["Authorization"] == "Bearer sk_test_unit"
    assert seen["headers"]["Idempotency-Key"] == "booking-b-1-attempt"
    assert seen["form"]["amount"] == ["2500"]
    assert seen["form"]["currency"] == ["usd"]
    assert seen["form"]["metadata[booking_id]"] == ["b-1"]
    assert seen["form"]["metadata[owner_id]"] == ["7"]


def test_transport_failure_retried_once():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request.headers["Idempotency-Key"])
        if len(attempts) == 1:
            raise httpx.ConnectError("connection reset", request=request)
        return httpx.Response(200, json={"id": "pi_retry", "client_secret": "s"})

    intent = make_gateway(handler).create_payment_intent("b-2", 100, "usd")

    assert intent.id == "pi_retry"
    # Both attempts carry the same key so Stripe dedupes them
    assert len(attempts) == 2
    assert attempts[0] == attempts[1]
    assert attempts[0].startswith("booking-b-2-")


def test_second_transport_failure_is_gateway_error():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(GatewayError):
        make_gateway(handler).create_payment_intent("b-3", 100, "usd")
    assert len(attempts) == 2


def test_api_error_is_not_retried():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        return httpx.Response(402, json={"error": {"message": "Your card was declined."}})

    with pytest.raises(GatewayError, match="declined"):
        make_gateway(handler).create_payment_intent("b-4", 100, "usd")
    assert len(attempts) == 1


def test_missing_secret_key_is_gateway_error():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("no request expected")

    with pytest.raises(GatewayError, match="not configured"):
        make_gateway(handler, secret_key="").create_payment_intent("b-5", 100, "usd")


def test_incomplete_response_is_gateway_error():
    gateway = make_gateway(lambda request: httpx.Response(200, json={"id": "pi_x"}))

    with pytest.raises(GatewayError):
        gateway.create_payment_intent("b-6", 100, "usd")


def test_from_settings():
    settings = Settings(
        STRIPE_SECRET_KEY="sk_live_x",
        STRIPE_WEBHOOK_SECRET="whsec_x",
        STRIPE_WEBHOOK_TOLERANCE=60,
        PAYMENT_GATEWAY_TIMEOUT=3.5,
    )

    gateway = StripeGateway.from_settings(settings)

    assert gateway._secret_key == "sk_live_x"
    assert gateway._webhook_secret == "whsec_x"
    assert gateway._webhook_tolerance == 60
    assert gateway._timeout == 3.5


def test_verify_webhook_returns_event():
    payload = json.dumps({"id": "evt_1", "type": "payment_intent.succeeded"}).encode()
    gateway = make_gateway(lambda request: httpx.Response(500))

    event = gateway.verify_webhook(payload, sign(payload))

    assert event["id"] == "evt_1"


@pytest.mark.parametrize(
    "header",
    [
        None,
        "",
        "v1=abc",
        "t=notanumber,v1=abc",
        "t=1700000000",
    ],
)
def test_verify_webhook_rejects_malformed_headers(header):
    gateway = make_gateway(lambda request: httpx.Response(500))

    with pytest.raises(WebhookSignatureError):
        gateway.verify_webhook(b"{}", header)


def test_verify_webhook_rejects_wrong_secret_and_tampering():
    payload = b'{"type": "payment_intent.succeeded"}'
    gateway = make_gateway(lambda request: httpx.Response(500))

    with pytest.raises(WebhookSignatureError):
        gateway.verify_webhook(payload, sign(payload, secret="whsec_other"))
    with pytest.raises(WebhookSignatureError):
        gateway.verify_webhook(payload + b" ", sign(payload))


def test_verify_webhook_enforces_tolerance():
    payload = b'{"type": "payment_intent.succeeded"}'
    gateway = make_gateway(lambda request: httpx.Response(500), webhook_tolerance=300)
    header = sign(payload, timestamp=1_700_000_000)

    assert gateway.verify_webhook(payload, header, now=1_700_000_100)["type"] == "payment_intent.succeeded"
    with pytest.raises(WebhookSignatureError, match="tolerance"):
        gateway.verify_webhook(payload, header, now=1_700_001_000)


def test_verify_webhook_accepts_any_listed_signature():
    payload = b'{"type": "charge.refunded"}'
    good = sign(payload)
    header = f"{good},v1={'0' * 64}"

    assert make_gateway(lambda request: httpx.Response(500)).verify_webhook(payload, header)["type"] == "charge.refunded"


def test_separate_calls_use_fresh_idempotency_keys():
    keys = []

    def handler(request: httpx.Request) -> httpx.Response:
        keys.append(request.headers["Idempotency-Key"])
        if len(keys) == 1:
            return httpx.Response(500, json={"error": {"message": "Something went wrong on Stripe's end."}})
        return httpx.Response(200, json={"id": "pi_second", "client_secret": "s"})

    gateway = make_gateway(handler)
    with pytest.raises(GatewayError):
        gateway.create_payment_intent("b-7", 100, "usd")
    intent = gateway.create_payment_intent("b-7", 100, "usd")

    assert intent.id == "pi_second"
    assert len(keys) == 2
    assert keys[0] != keys[1]


@pytest.mark.parametrize("payload", [b"[]", b"\"payment_intent.succeeded\"", b"42", b"null"])
def test_verify_webhook_rejects_non_object_payload(payload):
    gateway = make_gateway(lambda request: httpx.Response(500))

    with pytest.raises(WebhookSignatureError, match="Invalid webhook payload"):
        gateway.verify_webhook(payload, sign(payload))


def test_payment_gateway_is_abstract():
    with pytest.raises(TypeError):
        PaymentGateway()

    class HalfGateway(PaymentGateway):
        def verify_webhook(self, payload, signature_header):
            return {}

    with pytest.raises(TypeError):
        HalfGateway()
