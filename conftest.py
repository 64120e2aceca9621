import os
import sys

# Tests never touch a real database file
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SPRING_PROFILES_ACTIVE", "dev")

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import delivery_recon.models  # noqa: F401
from delivery_recon.core.database import Base
from delivery_recon.models import Client, Location
from delivery_recon.services.matching.location_directory import ensure_unmapped_sentinel


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(session):
    """A client with its Unmapped Locations bucket"""
    record = Client(name="Capriotti's")
    session.add(record)
    session.commit()
    ensure_unmapped_sentinel(session, record.id)
    return record


@pytest.fixture
def add_location(session, client):
    def _add(canonical_name, **fields):
        location = Location(client_id=client.id, canonical_name=canonical_name, **fields)
        session.add(location)
        session.commit()
        return location
    return _add


def csv_bytes(header, rows):
    """Build CSV file content from a header list and row lists"""
    lines = [",".join(header)]
    for row in rows:
        lines.append(",".join('"{}"'.format(str(v).replace('"', '""')) for v in row))
    return ("\n".join(lines) + "\n").encode("utf-8")
