from pathlib import Path
from dotenv import load_dotenv

# Load environment variables for tests before the app reads its settings
load_dotenv(Path(__file__).resolve().parents[1] / '.env.test')

from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from marketplace.models import (
    Booking,
    BookingStatus,
    PaymentStatus,
    ProviderProfile,
    Service,
    ServiceType,
    User,
    UserRole,
)
from marketplace.models.base import BaseModel
from marketplace.services.stripe_gateway import GatewayError, PaymentGateway, PaymentIntent


@pytest.fixture
def Session():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    BaseModel.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def db(Session):
    session = Session()
    try:
        yield session
    finally:
        session.close()


def future_time(days: int = 7) -> datetime:
    return (datetime.utcnow() + timedelta(days=days)).replace(microsecond=0)


@pytest.fixture
def parties(db):
    """Two owners, two providers and one service offered by the first provider."""
    owner = User(email='owner@test.com', first_name='Olive', last_name='Owner', role=UserRole.OWNER)
    other_owner = User(email='owner2@test.com', first_name='Otto', last_name='Owner', role=UserRole.OWNER)
    provider = User(email='provider@test.com', first_name='Pia', last_name='Provider', role=UserRole.PROVIDER)
    other_provider = User(email='provider2@test.com', first_name='Pete', last_name='Provider', role=UserRole.PROVIDER)
    admin = User(email='admin@test.com', first_name='Ada', last_name='Admin', role=UserRole.ADMIN)
    db.add_all([owner, other_owner, provider, other_provider, admin])
    db.commit()

    db.add(ProviderProfile(user_id=provider.id, bio='Dog walker'))
    service = Service(
        provider_id=provider.id,
        service_type=ServiceType.WALKING,
        title='Morning walk',
        price=Decimal('25.00'),
        currency='usd',
    )
    db.add(service)
    db.commit()
    db.refresh(service)
    return SimpleNamespace(
        owner=owner,
        other_owner=other_owner,
        provider=provider,
        other_provider=other_provider,
        admin=admin,
        service=service,
    )


@pytest.fixture
def make_booking(db, parties):
    """Insert a booking for ``parties.owner`` directly in the given state."""

    def _make(status=BookingStatus.PENDING, payment_status=PaymentStatus.PENDING, payment_intent_id=None, days=7):
        booking = Booking(
            owner_id=parties.owner.id,
            service_id=parties.service.id,
            booking_time=future_time(days),
            status=status,
            payment_status=payment_status,
            payment_intent_id=payment_intent_id,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make


class FakeGateway(PaymentGateway):
    """In-memory gateway recording every intent request."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def create_payment_intent(self, booking_id, amount, currency, metadata=None, idempotency_key=None):
        self.calls.append({
            "booking_id": booking_id,
            "amount": amount,
            "currency": currency,
            "metadata": metadata,
            "idempotency_key": idempotency_key,
        })
        if self.fail:
            raise GatewayError("card network down")
        return PaymentIntent(id=f"pi_{len(self.calls)}_{booking_id[:8]}", client_secret=f"secret_{len(self.calls)}")

    def verify_webhook(self, payload, signature_header):
        raise NotImplementedError


@pytest.fixture
def gateway():
    return FakeGateway()
