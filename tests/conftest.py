import os

# Settings are read at import time; point everything at throwaway resources first
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_secret")
os.environ.setdefault("PAYSTACK_BASE_URL", "https://api.paystack.test")

import json
from decimal import Decimal
from typing import AsyncGenerator

import httpx
import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from orderhub.models import (
    User, Address, Restaurant, MenuItem, Reservation, RoomBooking,
)
from orderhub.models.shared.enums import Base, UserRole, UserStatus, BookingStatus
from orderhub.db.seeds.status_catalog import seed_order_statuses
from orderhub.services.order.status_catalog import StatusCatalog
from orderhub.services.payment.paystack_gateway import PaystackGateway

TEST_DATABASE_URL = "sqlite+aiosqlite://"

# San Francisco restaurant, customer a few streets away
RESTAURANT_LAT, RESTAURANT_LON = Decimal("37.77490000"), Decimal("-122.41940000")
CUSTOMER_LAT, CUSTOMER_LON = Decimal("37.78490000"), Decimal("-122.40940000")


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as db:
        await seed_order_statuses(db)
        yield db


@pytest.fixture
async def catalog(session) -> StatusCatalog:
    return await StatusCatalog.load(session)


# === Collaborator rows ===

async def create_user(session, name, email, role=UserRole.CUSTOMER, **kwargs) -> User:
    user = User(name=name, email=email, role=role, status=kwargs.pop("status", UserStatus.ACTIVE), **kwargs)
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
async def customer(session) -> User:
    return await create_user(session, "Ada Customer", "ada@example.com", phone="+2348000000001")


@pytest.fixture
async def admin(session) -> User:
    return await create_user(session, "Root Admin", "admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
async def staff(session) -> User:
    return await create_user(session, "Kitchen Staff", "staff@example.com", role=UserRole.RESTAURANT_STAFF)


@pytest.fixture
async def driver(session) -> User:
    return await create_user(
        session, "Dara Driver", "dara@example.com", role=UserRole.DRIVER,
        phone="+2348000000002", is_online=True, is_available=True,
    )


@pytest.fixture
async def offline_driver(session) -> User:
    return await create_user(
        session, "Otto Offline", "otto@example.com", role=UserRole.DRIVER,
        is_online=False, is_available=True,
    )


@pytest.fixture
async def restaurant(session) -> Restaurant:
    restaurant = Restaurant(name="Mission Kitchen", latitude=RESTAURANT_LAT, longitude=RESTAURANT_LON, is_active=True)
    session.add(restaurant)
    await session.commit()
    return restaurant


@pytest.fixture
async def address(session, customer) -> Address:
    address = Address(
        user_id=customer.id, label="Home", line="1 Market St", city="San Francisco",
        latitude=CUSTOMER_LAT, longitude=CUSTOMER_LON,
    )
    session.add(address)
    await session.commit()
    return address


@pytest.fixture
async def menu_items(session, restaurant):
    jollof = MenuItem(restaurant_id=restaurant.id, name="Jollof Rice", price=Decimal("1000.00"), is_available=True)
    chapman = MenuItem(restaurant_id=restaurant.id, name="Chapman", price=Decimal("500.00"), is_available=True)
    session.add_all([jollof, chapman])
    await session.commit()
    return jollof, chapman


@pytest.fixture
async def reservation(session, customer, restaurant) -> Reservation:
    reservation = Reservation(
        user_id=customer.id, restaurant_id=restaurant.id, party_size=4,
        deposit_amount=Decimal("5000.00"), status=BookingStatus.PENDING,
    )
    session.add(reservation)
    await session.commit()
    return reservation


@pytest.fixture
async def room_booking(session, customer) -> RoomBooking:
    booking = RoomBooking(user_id=customer.id, total_amount=Decimal("45000.00"), status=BookingStatus.PENDING)
    session.add(booking)
    await session.commit()
    return booking


# === External services ===

class RecordingNotifier:
    """Stands in for the redis-backed DriverNotifier"""

    def __init__(self):
        self.calls = []

    async def notify_order_ready(self, order, driver_ids):
        driver_ids = list(driver_ids)
        self.calls.append((order.id, driver_ids))
        return len(driver_ids)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


class FakePaystack:
    """In-process Paystack API served through httpx.MockTransport"""

    def __init__(self):
        self.requests = []
        self.transactions = {}
        self.refunds = []
        self.fail_with = None

    def settle(self, reference, status="success", amount=None, gateway_response=None, channel="card"):
        txn = self.transactions[reference]
        txn.update(
            status=status,
            amount=amount if amount is not None else txn["amount"],
            gateway_response=gateway_response or ("Approved" if status == "success" else "Declined"),
            channel=channel,
            paid_at="2026-10-16T10:00:00.000Z" if status == "success" else None,
        )
        return txn

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return self.fail_with(request)

        path = request.url.path
        if request.method == "POST" and path == "/transaction/initialize":
            body = json.loads(request.content)
            reference = body["reference"]
            self.transactions[reference] = {
                "id": 1000 + len(self.transactions),
                "reference": reference,
                "amount": body["amount"],
                "currency": body["currency"],
                "status": "ongoing",
                "metadata": body.get("metadata"),
            }
            return httpx.Response(200, json={
                "status": True,
                "message": "Authorization URL created",
                "data": {
                    "authorization_url": f"https://checkout.paystack.test/{reference}",
                    "access_code": f"AC_{reference[-6:]}",
                    "reference": reference,
                },
            })
        if request.method == "GET" and path.startswith("/transaction/verify/"):
            reference = path.rsplit("/", 1)[-1]
            txn = self.transactions.get(reference)
            if txn is None:
                return httpx.Response(400, json={"status": False, "message": "Transaction reference not found"})
            return httpx.Response(200, json={"status": True, "message": "Verification successful", "data": txn})
        if request.method == "POST" and path == "/refund":
            body = json.loads(request.content)
            self.refunds.append(body)
            return httpx.Response(200, json={"status": True, "message": "Refund has been queued", "data": {"status": "pending"}})
        return httpx.Response(404, json={"status": False, "message": "Not found"})


@pytest.fixture
def paystack() -> FakePaystack:
    return FakePaystack()


@pytest.fixture
def gateway(paystack) -> PaystackGateway:
    return PaystackGateway(
        secret_key="sk_test_secret",
        base_url="https://api.paystack.test",
        timeout=5,
        transport=httpx.MockTransport(paystack.handler),
    )


# === Orders ===

@pytest.fixture
def make_order(session, catalog, customer, restaurant, address, menu_items):
    """Create an order through OrderService; delivery orders go to the customer's address"""
    from orderhub.models.shared.enums import OrderType
    from orderhub.schemas.order.order_schema import OrderCreate
    from orderhub.services.order.order_service import OrderService

    async def _make(order_type=OrderType.DELIVERY, **overrides):
        jollof, chapman = menu_items
        data = {
            "restaurant_id": restaurant.id,
            "order_type": order_type,
            "items": [
                {"menu_item_id": jollof.id, "quantity": 1},
                {"menu_item_id": chapman.id, "quantity": 2},
            ],
            "delivery_fee": Decimal("200"),
            "tax_amount": Decimal("160"),
        }
        if order_type == OrderType.DELIVERY:
            data["delivery_address_id"] = address.id
        if order_type == OrderType.DINE_IN:
            data["table_id"] = 7
        data.update(overrides)
        return await OrderService(session, catalog).create_order(OrderCreate(**data), customer.id)

    return _make


@pytest.fixture
def advance(session, catalog, notifier):
    """Walk an order through status names with the state machine"""
    from orderhub.services.order.order_state_machine import OrderStateMachine

    async def _advance(order_id, *status_names):
        machine = OrderStateMachine(session, catalog, notifier)
        order = None
        for name in status_names:
            order = await machine.transition(order_id, catalog.id_of(name))
        return order

    return _advance


@pytest.fixture
def make_user(session):
    async def _make(name, email, role=UserRole.CUSTOMER, **kwargs):
        return await create_user(session, name, email, role=role, **kwargs)
    return _make
