# ledger.py
import sqlite3
from datetime import date, datetime, timezone

import sqlalchemy
from databases import Database

from lab_booking.database import database as default_database
from lab_booking.errors import ConflictError
from lab_booking.models import orders
from lab_booking.schemas import Order

CONFIRMED = "confirmed"


def _duplicate_transaction(transaction_id: str) -> ConflictError:
    return ConflictError("Transaction id already used.", field="transactionId", transactionId=transaction_id)


class Ledger:
    """Durable store of confirmed orders."""

    def __init__(self, database: Database = default_database):
        self.database = database

    async def sum_confirmed_qty(self, resource_id: int, booking_date: date, time_slot: str) -> int:
        query = sqlalchemy.select(
            sqlalchemy.func.coalesce(sqlalchemy.func.sum(orders.c.resource_qty), 0)
        ).where(
            orders.c.resource_id == resource_id,
            orders.c.booking_date == booking_date.isoformat(),
            orders.c.time_slot == time_slot,
            orders.c.status == CONFIRMED,
        )
        return int(await self.database.fetch_val(query))

    async def transaction_exists(self, transaction_id: str) -> bool:
        query = sqlalchemy.select(orders.c.id).where(orders.c.transaction_id == transaction_id)
        return await self.database.fetch_one(query) is not None

    async def write_order(
        self,
        *,
        resource_id: int,
        resource_name: str,
        resource_qty: int,
        booking_date: date,
        time_slot: str,
        booking_type: str,
        amount: float,
        payment_mode: str,
        transaction_id: str,
        user_id: str,
    ) -> Order:
        values = dict(
            resource_id=resource_id,
            resource_name=resource_name,
            resource_qty=resource_qty,
            booking_date=booking_date.isoformat(),
            time_slot=time_slot,
            booking_type=booking_type,
            amount=amount,
            payment_mode=payment_mode,
            transaction_id=transaction_id,
            user_id=user_id,
            status=CONFIRMED,
            timestamp=datetime.now(timezone.utc),
        )
        if await self.transaction_exists(transaction_id):
            raise _duplicate_transaction(transaction_id)
        try:
            order_id = await self.database.execute(orders.insert().values(**values))
        except sqlite3.IntegrityError as exc:
            # Lost a race with another confirm using the same transaction id
            raise _duplicate_transaction(transaction_id) from exc
        return Order(id=order_id, **values)
