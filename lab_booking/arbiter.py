# arbiter.py
import logging
from datetime import timedelta
from typing import List, Optional

from lab_booking import config
from lab_booking.catalog import Catalog
from lab_booking.data_models import Hold, HoldKey, Resource
from lab_booking.errors import (
    CapacityError,
    ConflictError,
    RateLimitError,
    StateError,
    ValidationError,
)
from lab_booking.hold_table import HoldTable
from lab_booking.ledger import Ledger
from lab_booking.schemas import (
    AvailabilityRequest,
    BlockRequest,
    ConfirmRequest,
    Order,
    parse_request,
)

logger = logging.getLogger(__name__)


class BookingArbiter:
    """Validates block/confirm requests and moves holds into the ledger.

    Capacity for a key is ``confirmed + held <= max_qty``. Every read of those
    totals that leads to a mutation happens under the key's lock, so two
    concurrent blocks can never both take the last unit, and a hold cannot
    expire halfway through its own confirmation.
    """

    def __init__(
        self,
        catalog: Catalog,
        ledger: Ledger,
        hold_table: Optional[HoldTable] = None,
        max_holds_per_user: int = config.MAX_HOLDS_PER_USER,
    ):
        self.catalog = catalog
        self.ledger = ledger
        if hold_table is None:
            hold_table = HoldTable(timedelta(seconds=config.HOLD_DURATION_SECONDS))
        self.hold_table = hold_table
        self.max_holds_per_user = max_holds_per_user

    async def _resolve_key(self, resource_id: int, booking_date, time_slot: str):
        resource = await self.catalog.get_resource(resource_id)
        valid_slots = self.catalog.legal_time_slots(resource.booking_type)
        if time_slot not in valid_slots:
            raise ValidationError(
                "Invalid time slot for the selected booking type. Valid slots are: " + ", ".join(valid_slots),
                field="timeSlot",
                validSlots=list(valid_slots),
            )
        return resource, HoldKey(resource.id, booking_date, time_slot)

    async def block(self, payload) -> dict:
        """Reserve quantity for a user for the hold duration."""
        request = parse_request(BlockRequest, payload)
        resource, key = await self._resolve_key(request.resource_id, request.booking_date, request.time_slot)
        if not resource.active:
            raise ValidationError("Resource is not active.", field="resourceId")

        table = self.hold_table
        async with table.user_lock(request.user_id), table.lock(key):
            existing = table.find_by_user(key, request.user_id)
            if existing is not None:
                now = table.clock()
                raise ConflictError(
                    "User already has a block for the selected time slot.",
                    blockStartTime=existing.start_time.isoformat(),
                    blockEndTime=existing.expiry_time.isoformat(),
                    remainingSeconds=int(existing.remaining(now).total_seconds()),
                )

            booked_qty = await self.ledger.sum_confirmed_qty(key.resource_id, key.booking_date, key.time_slot)
            held_qty = table.total_qty(key)
            if booked_qty + held_qty + request.resource_qty > resource.max_qty:
                logger.warning(
                    "Block rejected for capacity: user=%s key=%s booked=%s held=%s requested=%s max=%s",
                    request.user_id, key, booked_qty, held_qty, request.resource_qty, resource.max_qty,
                )
                raise CapacityError(
                    "Not enough availability for the selected time slot.",
                    alreadyBooked=booked_qty,
                    blocked=held_qty,
                    max=resource.max_qty,
                )

            if table.count_for_user(request.user_id) >= self.max_holds_per_user:
                raise RateLimitError(
                    f"User cannot hold more than {self.max_holds_per_user} resources at a time.",
                    limit=self.max_holds_per_user,
                )

            hold = Hold(
                user_id=request.user_id,
                key=key,
                resource_qty=request.resource_qty,
                start_time=table.clock(),
                duration=table.duration,
            )
            table.insert(hold)

        logger.info("Hold created: user=%s key=%s qty=%s", hold.user_id, key, hold.resource_qty)
        return {
            "message": "Resource blocked successfully.",
            "blockStartTime": hold.start_time.isoformat(),
            "blockEndTime": hold.expiry_time.isoformat(),
        }

    async def confirm(self, payload) -> Order:
        """Promote the user's active hold into a confirmed order."""
        request = parse_request(ConfirmRequest, payload)
        key = HoldKey(request.resource_id, request.booking_date, request.time_slot)

        table = self.hold_table
        async with table.lock(key):
            hold = table.find_by_user(key, request.user_id)
            if hold is None:
                raise StateError("No block found for the given key.", key=str(key))
            if hold.resource_qty != request.resource_qty:
                raise ValidationError(
                    f"Resource quantity does not match the block ({hold.resource_qty}).",
                    field="resourceQty",
                    blockedQty=hold.resource_qty,
                )

            resource: Resource = await self.catalog.get_resource(request.resource_id)
            if request.booking_type.value != resource.booking_type:
                raise ValidationError(
                    "Booking type does not match the resource.",
                    field="bookingType",
                    expected=resource.booking_type,
                )

            order = await self.ledger.write_order(
                resource_id=resource.id,
                resource_name=resource.name,
                resource_qty=request.resource_qty,
                booking_date=request.booking_date,
                time_slot=request.time_slot,
                booking_type=request.booking_type.value,
                amount=request.amount,
                payment_mode=request.payment_mode,
                transaction_id=request.transaction_id,
                user_id=request.user_id,
            )
            table.remove(key, request.user_id)

        logger.info("Order confirmed: id=%s user=%s key=%s txn=%s", order.id, order.user_id, key, order.transaction_id)
        return order

    async def availability(self, payload) -> dict:
        request = parse_request(AvailabilityRequest, payload)
        resource, key = await self._resolve_key(request.resource_id, request.booking_date, request.time_slot)
        booked_qty = await self.ledger.sum_confirmed_qty(key.resource_id, key.booking_date, key.time_slot)
        held_qty = self.hold_table.total_qty(key)
        return {
            "maxQty": resource.max_qty,
            "bookedQty": booked_qty,
            "heldQty": held_qty,
            "availableQty": max(resource.max_qty - booked_qty - held_qty, 0),
        }

    def holds_for_user(self, user_id: str) -> List[dict]:
        now = self.hold_table.clock()
        return [hold.describe(now) for hold in self.hold_table.holds_for_user(user_id)]
