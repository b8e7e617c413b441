# models.py
import sqlalchemy
from lab_booking.database import metadata

#'resources' table, read by the catalog
resources = sqlalchemy.Table(
    "resources",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("name", sqlalchemy.String, unique=True),
    sqlalchemy.Column("max_qty", sqlalchemy.Integer),
    sqlalchemy.Column("booking_type", sqlalchemy.String),
    sqlalchemy.Column("active", sqlalchemy.Boolean, default=True),
)

#'orders' table, the ledger of confirmed bookings
orders = sqlalchemy.Table(
    "orders",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("resource_id", sqlalchemy.Integer, sqlalchemy.ForeignKey("resources.id"), index=True),
    sqlalchemy.Column("resource_name", sqlalchemy.String),
    sqlalchemy.Column("resource_qty", sqlalchemy.Integer),

    # ISO date string, part of the capacity key together with resource_id and time_slot
    sqlalchemy.Column("booking_date", sqlalchemy.String(10), index=True),
    sqlalchemy.Column("time_slot", sqlalchemy.String),

    sqlalchemy.Column("booking_type", sqlalchemy.String),
    sqlalchemy.Column("amount", sqlalchemy.Float),
    sqlalchemy.Column("payment_mode", sqlalchemy.String),
    sqlalchemy.Column("transaction_id", sqlalchemy.String, unique=True),
    sqlalchemy.Column("user_id", sqlalchemy.String, index=True),
    sqlalchemy.Column("status", sqlalchemy.String, default="confirmed"),
    sqlalchemy.Column("timestamp", sqlalchemy.DateTime(timezone=True)),
)
