import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("PAYMENT_PROVIDER", "stub")

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from cowork.db.session import Base
from cowork.db import models  # noqa: F401
from cowork.services import booking_service

# a week before the fixtures' booking day
NOW = datetime(2026, 3, 3, 8, 0, tzinfo=timezone.utc)


def enable_sqlite_savepoints(engine):
    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; let SQLAlchemy emit it
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture()
def db_session():
    engine = enable_sqlite_savepoints(create_engine("sqlite+pysqlite:///:memory:", future=True))
    TestingSessionLocal = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def frozen_clock(monkeypatch):
    monkeypatch.setattr(booking_service, "utcnow", lambda: NOW)
    return NOW
