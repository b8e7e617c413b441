# main.py
import logging
from datetime import timedelta
from typing import Any

import fastapi
from fastapi import Body, Query, Request, status
from fastapi.responses import JSONResponse

from lab_booking import config
from lab_booking.arbiter import BookingArbiter
from lab_booking.catalog import Catalog
from lab_booking.database import create_tables, database
from lab_booking.errors import (
    BookingError,
    CapacityError,
    ConflictError,
    NotFoundError,
    RateLimitError,
    StateError,
    ValidationError,
)
from lab_booking.hold_table import HoldTable
from lab_booking.ledger import Ledger

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    CapacityError: status.HTTP_409_CONFLICT,
    RateLimitError: status.HTTP_429_TOO_MANY_REQUESTS,
    StateError: status.HTTP_400_BAD_REQUEST,
}

#FastAPI Setup
app = fastapi.FastAPI(title="Lab Booking")


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.info("%s %s -> %s %s", request.method, request.url.path, status_code, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def get_arbiter(request: Request) -> BookingArbiter:
    return request.app.state.arbiter


# Order blocking and confirmation
@app.post("/api/orders/blockOrder")
async def block_order(request: Request, payload: Any = Body(...)):
    """Hold resource quantity for the user while they complete payment."""
    return await get_arbiter(request).block(payload)


@app.post("/api/orders/confirmOrder")
async def confirm_order(request: Request, payload: Any = Body(...)):
    """Turn the user's active hold into a confirmed order."""
    order = await get_arbiter(request).confirm(payload)
    return {"message": "Order confirmed successfully.", "order": order.model_dump(by_alias=True, mode="json")}


@app.get("/api/orders/blocks/{user_id}")
async def list_blocks(user_id: str, request: Request):
    return get_arbiter(request).holds_for_user(user_id)


@app.get("/api/resources/{resource_id}/availability")
async def resource_availability(
    resource_id: int,
    request: Request,
    booking_date: str = Query(..., alias="bookingDate"),
    time_slot: str = Query(..., alias="timeSlot"),
):
    return await get_arbiter(request).availability(
        {"resourceId": resource_id, "bookingDate": booking_date, "timeSlot": time_slot}
    )


@app.on_event("startup")
async def startup():
    config.configure_logging()
    await database.connect()
    create_tables()

    hold_table = HoldTable(timedelta(seconds=config.HOLD_DURATION_SECONDS))
    await hold_table.start()
    app.state.hold_table = hold_table
    app.state.arbiter = BookingArbiter(
        Catalog(database),
        Ledger(database),
        hold_table,
        max_holds_per_user=config.MAX_HOLDS_PER_USER,
    )
    logger.info(
        "Booking core ready: hold duration %ss, max %s holds per user",
        config.HOLD_DURATION_SECONDS, config.MAX_HOLDS_PER_USER,
    )


@app.on_event("shutdown")
async def shutdown():
    await app.state.hold_table.close()
    await database.disconnect()
