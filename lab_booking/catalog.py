# catalog.py
from typing import Tuple

from databases import Database

from lab_booking.data_models import BOOKING_TYPE_TIME_SLOTS, BookingType, Resource
from lab_booking.database import database as default_database
from lab_booking.errors import NotFoundError
from lab_booking.models import resources


class Catalog:
    """Read-only lookups against the resource catalog."""

    def __init__(self, database: Database = default_database):
        self.database = database

    async def get_resource(self, resource_id: int) -> Resource:
        query = resources.select().where(resources.c.id == resource_id)
        record = await self.database.fetch_one(query)
        if record is None:
            raise NotFoundError("Resource not found.", resourceId=resource_id)
        return Resource(
            id=record["id"],
            name=record["name"],
            max_qty=record["max_qty"],
            booking_type=record["booking_type"],
            active=bool(record["active"]),
        )

    @staticmethod
    def legal_time_slots(booking_type: str) -> Tuple[str, ...]:
        try:
            return BOOKING_TYPE_TIME_SLOTS[BookingType(booking_type)]
        except ValueError:
            return ()
