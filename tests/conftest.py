import asyncio
import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

# Must be set before lab_booking.database is imported
_db_dir = tempfile.mkdtemp(prefix="lab_booking_test_")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_db_dir, "test.db")

from lab_booking.arbiter import BookingArbiter  # noqa: E402
from lab_booking.catalog import Catalog  # noqa: E402
from lab_booking.data_models import BookingType, Resource  # noqa: E402
from lab_booking.database import create_tables, engine  # noqa: E402
from lab_booking.errors import ConflictError, NotFoundError  # noqa: E402
from lab_booking.hold_table import HoldTable  # noqa: E402
from lab_booking.models import orders, resources  # noqa: E402
from lab_booking.schemas import Order  # noqa: E402

BOOKING_DATE = "2023-10-10"

SEED_RESOURCES = [
    {"id": 1, "name": "Spectrometer", "max_qty": 10, "booking_type": BookingType.TWO_HOUR.value, "active": True},
    {"id": 2, "name": "Clean Bench", "max_qty": 3, "booking_type": BookingType.HALF_DAY.value, "active": True},
    {"id": 3, "name": "Old Centrifuge", "max_qty": 2, "booking_type": BookingType.FULL_DAY.value, "active": False},
]


class FakeClock:
    def __init__(self):
        self.now = datetime(2023, 10, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeCatalog:
    def __init__(self, *items: Resource):
        self.resources = {item.id: item for item in items}

    async def get_resource(self, resource_id):
        await asyncio.sleep(0)
        if resource_id not in self.resources:
            raise NotFoundError("Resource not found.", resourceId=resource_id)
        return self.resources[resource_id]

    legal_time_slots = staticmethod(Catalog.legal_time_slots)


class FakeLedger:
    """In-memory ledger that yields to the loop on every call, like real I/O would."""

    def __init__(self):
        self.orders = []

    async def sum_confirmed_qty(self, resource_id, booking_date, time_slot):
        await asyncio.sleep(0)
        return sum(
            order.resource_qty
            for order in self.orders
            if (order.resource_id, order.booking_date, order.time_slot) == (resource_id, booking_date, time_slot)
        )

    async def write_order(self, **values):
        await asyncio.sleep(0)
        if any(order.transaction_id == values["transaction_id"] for order in self.orders):
            raise ConflictError("Transaction id already used.", field="transactionId")
        order = Order(
            id=len(self.orders) + 1,
            status="confirmed",
            timestamp=datetime.now(timezone.utc),
            **values,
        )
        self.orders.append(order)
        return order


def block_payload(user_id="user1", qty=2, slot="10-12", resource_id=1, booking_date=BOOKING_DATE):
    return {
        "userId": user_id,
        "resourceId": resource_id,
        "bookingDate": booking_date,
        "timeSlot": slot,
        "resourceQty": qty,
    }


def confirm_payload(user_id="user1", qty=2, slot="10-12", resource_id=1, booking_date=BOOKING_DATE,
                    booking_type=BookingType.TWO_HOUR.value, transaction_id=None):
    return {
        "userId": user_id,
        "resourceId": resource_id,
        "resourceQty": qty,
        "bookingDate": booking_date,
        "amount": 200,
        "bookingType": booking_type,
        "timeSlot": slot,
        "mode": "online",
        "transactionId": transaction_id or f"txn-{user_id}-{resource_id}-{booking_date}-{slot}",
    }


def reset_tables():
    create_tables()
    with engine.begin() as conn:
        conn.execute(orders.delete())
        conn.execute(resources.delete())
        conn.execute(resources.insert(), SEED_RESOURCES)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def spectrometer():
    return Resource(id=1, name="Spectrometer", max_qty=10, booking_type=BookingType.TWO_HOUR.value)


@pytest.fixture
def catalog(spectrometer):
    return FakeCatalog(
        spectrometer,
        Resource(id=2, name="Clean Bench", max_qty=3, booking_type=BookingType.HALF_DAY.value),
        Resource(id=3, name="Old Centrifuge", max_qty=2, booking_type=BookingType.FULL_DAY.value, active=False),
    )


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def hold_table(clock):
    return HoldTable(timedelta(minutes=5), clock=clock)


@pytest.fixture
def arbiter(catalog, ledger, hold_table):
    return BookingArbiter(catalog, ledger, hold_table, max_holds_per_user=5)
