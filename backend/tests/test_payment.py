import logging
from decimal import Decimal
from types import SimpleNamespace

import httpx
import pytest

from marketplace import crud
from marketplace.models import Booking, BookingStatus, PaymentStatus
from marketplace.services import payments
from marketplace.services.booking_lifecycle import Actor
from marketplace.services.results import ErrorKind
from marketplace.services.stripe_gateway import StripeGateway

from conftest import FakeGateway


def test_split_amount():
    assert payments.split_amount(2500, 10) == (250, 2250)
    assert payments.split_amount(999, 10) == (100, 899)
    assert payments.split_amount(1000, 0) == (0, 1000)


def test_to_minor_units():
    assert payments.to_minor_units(Decimal("25.00")) == 2500
    assert payments.to_minor_units(Decimal("19.995")) == 2000


def test_create_intent_for_confirmed_booking(db, parties, make_booking, gateway):
    booking = make_booking(status=BookingStatus.CONFIRMED)

    result = payments.create_payment_intent(db, booking.id, Actor.from_user(parties.owner), gateway)

    assert result.ok
    intent = result.value
    assert intent.booking_id == booking.id
    assert intent.amount == 2500
    assert intent.platform_fee == 250
    assert intent.provider_amount == 2250
    assert intent.currency == "usd"
    assert gateway.calls[0]["metadata"]["provider_id"] == str(parties.provider.id)
    db.expire_all()
    stored = db.get(Booking, booking.id)
    assert stored.payment_intent_id == intent.payment_intent_id
    assert stored.payment_status == PaymentStatus.PENDING
    assert stored.status == BookingStatus.CONFIRMED


def test_second_intent_is_already_processed(db, parties, make_booking, gateway):
    booking = make_booking(status=BookingStatus.CONFIRMED)
    owner = Actor.from_user(parties.owner)

    first = payments.create_payment_intent(db, booking.id, owner, gateway)
    second = payments.create_payment_intent(db, booking.id, owner, gateway)

    assert first.ok
    assert second.kind == ErrorKind.ALREADY_PROCESSED
    assert len(gateway.calls) == 1
    db.expire_all()
    assert db.get(Booking, booking.id).payment_intent_id == first.value.payment_intent_id


def test_racing_intent_keeps_first_id(db, parties, make_booking, gateway, monkeypatch):
    booking = make_booking(status=BookingStatus.CONFIRMED)
    crud.booking.set_payment_intent(db, booking.id, "pi_winner")
    # This request read the booking before the winner stored its intent
    stored = crud.booking.get_booking(db, booking.id)
    stale_view = SimpleNamespace(
        id=stored.id,
        owner_id=stored.owner_id,
        status=stored.status,
        payment_status=stored.payment_status,
        service=stored.service,
        payment_intent_id=None,
    )
    monkeypatch.setattr(crud.booking, "get_booking", lambda db_, booking_id: stale_view)

    result = payments.create_payment_intent(db, booking.id, Actor.from_user(parties.owner), gateway)

    assert result.kind == ErrorKind.ALREADY_PROCESSED
    monkeypatch.undo()
    db.expire_all()
    assert db.get(Booking, booking.id).payment_intent_id == "pi_winner"


@pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.CANCELLED, BookingStatus.COMPLETED])
def test_intent_requires_confirmed_booking(db, parties, make_booking, gateway, status):
    booking = make_booking(status=status)

    result = payments.create_payment_intent(db, booking.id, Actor.from_user(parties.owner), gateway)

    assert result.kind == ErrorKind.INVALID_TRANSITION
    assert gateway.calls == []


@pytest.mark.parametrize("who", ["other_owner", "provider", "admin"])
def test_intent_only_for_booking_owner(db, parties, make_booking, gateway, who):
    booking = make_booking(status=BookingStatus.CONFIRMED)

    result = payments.create_payment_intent(db, booking.id, Actor.from_user(getattr(parties, who)), gateway)

    assert result.kind == ErrorKind.UNAUTHORIZED
    assert gateway.calls == []


def test_intent_missing_booking(db, parties, gateway):
    result = payments.create_payment_intent(db, "missing", Actor.from_user(parties.owner), gateway)

    assert result.kind == ErrorKind.NOT_FOUND


def test_paid_booking_is_already_processed(db, parties, make_booking, gateway):
    booking = make_booking(status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.PAID)

    result = payments.create_payment_intent(db, booking.id, Actor.from_user(parties.owner), gateway)

    assert result.kind == ErrorKind.ALREADY_PROCESSED


def test_gateway_failure_leaves_booking_untouched(db, parties, make_booking):
    booking = make_booking(status=BookingStatus.CONFIRMED)
    failing = FakeGateway(fail=True)

    result = payments.create_payment_intent(db, booking.id, Actor.from_user(parties.owner), failing)

    assert result.kind == ErrorKind.GATEWAY_ERROR
    db.expire_all()
    assert db.get(Booking, booking.id).payment_intent_id is None

    # Safe to retry once the gateway recovers
    failing.fail = False
    assert payments.create_payment_intent(db, booking.id, Actor.from_user(parties.owner), failing).ok
    first_key, second_key = (call["idempotency_key"] for call in failing.calls)
    assert first_key.startswith(f"booking-{booking.id}-")
    assert first_key != second_key


def test_retry_after_stripe_error_gets_new_intent(db, parties, make_booking):
    booking = make_booking(status=BookingStatus.CONFIRMED)
    keys = []

    def handler(request: httpx.Request) -> httpx.Response:
        keys.append(request.headers["Idempotency-Key"])
        if len(keys) == 1:
            return httpx.Response(500, json={"error": {"message": "Stripe is having a moment."}})
        return httpx.Response(200, json={"id": "pi_after_retry", "client_secret": "pi_after_retry_secret"})

    stripe = StripeGateway(
        secret_key="sk_test_unit", api_base="https://stripe.test", transport=httpx.MockTransport(handler)
    )
    owner = Actor.from_user(parties.owner)

    first = payments.create_payment_intent(db, booking.id, owner, stripe)
    second = payments.create_payment_intent(db, booking.id, owner, stripe)

    assert first.kind == ErrorKind.GATEWAY_ERROR
    assert second.ok
    assert second.value.payment_intent_id == "pi_after_retry"
    assert keys[0] != keys[1]


def test_paid_outcome_recorded_without_touching_status(db, parties, make_booking):
    booking = make_booking(status=BookingStatus.CONFIRMED, payment_intent_id="pi_abc")

    result = payments.apply_payment_outcome(db, "pi_abc", PaymentStatus.PAID)

    assert result.ok
    assert result.value.payment_status == PaymentStatus.PAID
    assert result.value.status == BookingStatus.CONFIRMED


def test_outcome_replay_is_noop(db, parties, make_booking):
    make_booking(status=BookingStatus.CONFIRMED, payment_intent_id="pi_abc", payment_status=PaymentStatus.PAID)

    result = payments.apply_payment_outcome(db, "pi_abc", PaymentStatus.PAID)

    assert result.ok
    assert result.value.payment_status == PaymentStatus.PAID


def test_recorded_outcome_is_logged(db, parties, make_booking, caplog):
    booking = make_booking(status=BookingStatus.CONFIRMED, payment_intent_id="pi_logged")
    caplog.set_level(logging.INFO, logger="marketplace.services.payments")

    payments.apply_payment_outcome(db, "pi_logged", PaymentStatus.PAID)

    assert f"Booking {booking.id} payment PENDING -> PAID" in [
        r.getMessage() for r in caplog.records if r.name == "marketplace.services.payments"
    ]


def test_failed_then_paid(db, parties, make_booking):
    make_booking(status=BookingStatus.CONFIRMED, payment_intent_id="pi_abc")

    assert payments.apply_payment_outcome(db, "pi_abc", PaymentStatus.FAILED).value.payment_status == PaymentStatus.FAILED
    assert payments.apply_payment_outcome(db, "pi_abc", PaymentStatus.PAID).value.payment_status == PaymentStatus.PAID


def test_failure_after_paid_is_ignored(db, parties, make_booking):
    booking = make_booking(status=BookingStatus.CONFIRMED, payment_intent_id="pi_abc", payment_status=PaymentStatus.PAID)

    result = payments.apply_payment_outcome(db, "pi_abc", PaymentStatus.FAILED)

    assert result.kind == ErrorKind.ALREADY_PROCESSED
    db.expire_all()
    assert db.get(Booking, booking.id).payment_status == PaymentStatus.PAID


def test_outcome_for_unknown_intent(db, parties):
    result = payments.apply_payment_outcome(db, "pi_unknown", PaymentStatus.PAID)

    assert result.kind == ErrorKind.NOT_FOUND


def test_pending_is_not_an_outcome(db, parties):
    with pytest.raises(ValueError):
        payments.apply_payment_outcome(db, "pi_abc", PaymentStatus.PENDING)
