"""Pytest configuration: in-memory database, fake collaborators and swap factories."""
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.domain.bookings.models import BookingType
from app.domain.common.errors import IntegrationError
from app.domain.common.types import generate_id
from app.domain.proposals.models import CashOffer
from app.domain.swaps.models import AuctionStrategy, FirstMatchStrategy, PaymentTypes
from app.domain.users.models import User
from app.infra.db.base import Base, build_sessionmaker
from app.infra.db.models import *  # noqa: F401, F403
from app.infra.db.repositories.user_repo import UserRepositoryImpl
from app.infra.db.session import atomic
from app.infra.retry import RetryPolicy
from app.infra.vendors.payment_client import CashOfferValidation, PaymentGateway
from app.services.container import build_swap_services
from app.services.ledger_service import LedgerRecorder
from app.services.notification_service import SwapNotifier
from app.settings import get_settings

START = datetime(2030, 1, 1, 12, 0, 0)


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: marks tests that need a real DB or Redis (deselect with '-m \"not integration\"')"
    )


class Clock:
    """Settable clock handed to the services instead of utcnow."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakePaymentGateway(PaymentGateway):
    """In-memory escrow book."""

    def __init__(self):
        self.offer_errors: list[str] = []
        self.fail_escrow = False
        self.escrows: dict[str, dict] = {}

    async def validate_cash_offer(self, user_id, amount, currency, payment_method_id):
        return CashOfferValidation(is_valid=not self.offer_errors, errors=list(self.offer_errors))

    async def create_escrow(self, payer_id, payee_id, amount, currency, payment_method_id, reference):
        if self.fail_escrow:
            raise IntegrationError("payment", "escrow service unavailable")
        escrow_id = f"esc-{len(self.escrows) + 1}"
        self.escrows[escrow_id] = {
            "status": "held",
            "payer_id": payer_id,
            "payee_id": payee_id,
            "amount": amount,
            "reference": reference,
        }
        return escrow_id

    async def release_escrow(self, escrow_id):
        self.escrows[escrow_id]["status"] = "released"

    async def refund_escrow(self, escrow_id, reason):
        self.escrows[escrow_id]["status"] = "refunded"
        self.escrows[escrow_id]["reason"] = reason


class RecordingNotifier(SwapNotifier):
    """Keeps every notification in memory instead of writing the inbox."""

    def __init__(self):
        super().__init__(None, None, RetryPolicy(max_attempts=1))
        self.sent: list[dict] = []

    async def notify(self, user_id, type, title, message, data=None):
        self.sent.append({"user_id": user_id, "type": type, "message": message, "data": data or {}})
        return True

    def types_for(self, user_id: str) -> list[str]:
        return [n["type"] for n in self.sent if n["user_id"] == user_id]


class FakeLedger(LedgerRecorder):
    def __init__(self):
        super().__init__(None, RetryPolicy(max_attempts=1), enabled=False)
        self.events: list[tuple[str, dict]] = []

    async def record(self, event_type, data):
        self.events.append((event_type, data))
        return f"tx-{len(self.events)}"

    @property
    def event_types(self) -> list[str]:
        return [e for e, _ in self.events]


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(engine):
    session_factory = build_sessionmaker(engine)
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def payment():
    return FakePaymentGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def services(db_session, payment, notifier, ledger, clock):
    return build_swap_services(
        db_session,
        payment=payment,
        notifier=notifier,
        ledger=ledger,
        settings=get_settings(),
        clock=clock,
    )


@pytest.fixture
def make_user(db_session):
    async def _make(name: str = "user") -> User:
        user = User.create(f"{name}-{generate_id()[:8]}@swapmail.io", "not-a-real-hash", display_name=name)
        async with atomic(db_session):
            return await UserRepositoryImpl(db_session).create(user)

    return _make


@pytest.fixture
def make_booking(services, clock):
    async def _make(owner: User, *, check_in_days: int = 60, title: str = "Lisbon apartment"):
        check_in = clock.now + timedelta(days=check_in_days)
        return await services.bookings.create_booking(
            owner_id=owner.id,
            type=BookingType.HOTEL,
            title=title,
            city="Lisbon",
            country="PT",
            check_in_date=check_in,
            check_out_date=check_in + timedelta(days=4),
            original_price=600.0,
            swap_value=550.0,
        )

    return _make


@pytest.fixture
def make_swap(services, make_booking):
    async def _make(
        owner: User,
        *,
        strategy=None,
        payment_types: Optional[PaymentTypes] = None,
        check_in_days: int = 60,
    ):
        booking = await make_booking(owner, check_in_days=check_in_days)
        return await services.swaps.create_swap(
            owner.id,
            booking.id,
            strategy or FirstMatchStrategy(),
            payment_types or PaymentTypes(),
        )

    return _make


@pytest.fixture
def auction_strategy(clock):
    def _make(days: int = 10, auto_select_after_hours: Optional[int] = None) -> AuctionStrategy:
        return AuctionStrategy(clock.now + timedelta(days=days), auto_select_after_hours)

    return _make


CASH_AND_BOOKINGS = PaymentTypes(booking_exchange=True, cash_payment=True, minimum_cash_amount=100.0)


def cash(amount: float) -> CashOffer:
    return CashOffer(amount=amount, currency="USD", payment_method_id="pm_card_visa")
