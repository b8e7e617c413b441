# database.py
import os

from databases import Database
from dotenv import load_dotenv
from sqlalchemy import MetaData, create_engine
from sqlalchemy.engine import Engine

load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./lab_booking.db")

# Async connection for request handling; the sync engine only runs DDL
database = Database(DATABASE_URL)
metadata = MetaData()


def build_engine(url: str = DATABASE_URL) -> Engine:
    if url.startswith("sqlite"):
        # DDL may run from a different thread than the one that opened the file
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url)


engine = build_engine()


def create_tables(bind: Engine = engine):
    """Create the catalog and ledger tables if they don't exist."""
    import lab_booking.models  # noqa: F401  registers tables on metadata

    metadata.create_all(bind=bind)
