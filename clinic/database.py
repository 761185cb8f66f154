import logging
import os
import sqlite3
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from .exceptions import ClinicError, StorageError

log = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic.db")
ISOLATION_LEVEL = os.getenv("DATABASE_ISOLATION_LEVEL", "READ COMMITTED")

# If using SQLite, need check_same_thread
connect_args = {}
engine_options = {}
if DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}
else:
    engine_options = {"isolation_level": ISOLATION_LEVEL, "pool_pre_ping": True}

engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args, **engine_options)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


@event.listens_for(Engine, "connect")
def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores foreign keys unless asked per connection."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@contextmanager
def transaction(db: Session):
    """
    Stage writes on ``db`` and commit them once.

    Any exception rolls back everything staged inside the block. Domain errors
    propagate as they are, anything else surfaces as a StorageError.
    """
    try:
        yield db
        db.commit()
    except ClinicError:
        db.rollback()
        raise
    except Exception as exc:
        db.rollback()
        log.exception("Transaction rolled back: %s", exc)
        raise StorageError(f"Storage failure, no changes were saved: {exc}") from exc
