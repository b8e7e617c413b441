# schemas.py
from datetime import date, datetime
from typing import Annotated, Any, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from lab_booking.data_models import BookingType
from lab_booking.errors import ValidationError

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

Model = TypeVar("Model", bound=BaseModel)


class RequestModel(BaseModel):
    # Payloads use camelCase keys; ids may arrive as numbers
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class BlockRequest(RequestModel):
    user_id: NonEmptyStr = Field(alias="userId")
    resource_id: int = Field(alias="resourceId")
    booking_date: date = Field(alias="bookingDate")
    time_slot: NonEmptyStr = Field(alias="timeSlot")
    resource_qty: int = Field(alias="resourceQty", gt=0)


class ConfirmRequest(RequestModel):
    user_id: NonEmptyStr = Field(alias="userId")
    resource_id: int = Field(alias="resourceId")
    resource_qty: int = Field(alias="resourceQty", gt=0)
    booking_date: date = Field(alias="bookingDate")
    amount: float = Field(alias="amount", ge=0)
    booking_type: BookingType = Field(alias="bookingType")
    time_slot: NonEmptyStr = Field(alias="timeSlot")
    payment_mode: NonEmptyStr = Field(alias="mode")
    transaction_id: NonEmptyStr = Field(alias="transactionId")


class AvailabilityRequest(RequestModel):
    resource_id: int = Field(alias="resourceId")
    booking_date: date = Field(alias="bookingDate")
    time_slot: NonEmptyStr = Field(alias="timeSlot")


class Order(BaseModel):
    """A confirmed booking as written to the ledger."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    resource_id: int = Field(alias="resourceId")
    resource_name: str = Field(alias="resourceName")
    resource_qty: int = Field(alias="resourceQty")
    booking_date: date = Field(alias="bookingDate")
    time_slot: str = Field(alias="timeSlot")
    booking_type: str = Field(alias="bookingType")
    amount: float
    payment_mode: str = Field(alias="paymentMode")
    transaction_id: str = Field(alias="transactionId")
    user_id: str = Field(alias="userId")
    status: str
    timestamp: datetime


def _describe(field: str, error: dict) -> str:
    error_type = error.get("type")
    if error_type == "missing":
        return f"{field} is required."
    if field == "resourceQty" and error_type == "greater_than":
        return "Resource quantity should be greater than 0."
    if field == "bookingType" and error_type == "enum":
        return "Invalid booking type."
    if error_type == "string_too_short":
        return f"{field} must not be empty."
    return f"Invalid {field}: {error.get('msg')}."


def parse_request(model: Type[Model], data: Any) -> Model:
    """Validate a raw payload, reporting the first offending field as a ValidationError."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        error = exc.errors()[0]
        field = str(error["loc"][0]) if error.get("loc") else "body"
        raise ValidationError(_describe(field, error), field=field) from exc
