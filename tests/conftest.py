"""Shared pytest fixtures for eventledger tests."""

import pytest

from eventledger.client import EventClient
from eventledger.db.connection import Database
from eventledger.events.store import EventStore
from eventledger.projections.store import ProjectionStore


@pytest.fixture
async def db():
    """In-memory database for tests."""
    database = await Database.connect(":memory:")
    yield database
    await database.close()


@pytest.fixture
async def event_store(db):
    """EventStore backed by in-memory database."""
    return EventStore(db)


@pytest.fixture
async def projection_store(db):
    """ProjectionStore backed by in-memory database."""
    return ProjectionStore(db)


@pytest.fixture
async def client(db):
    """EventClient sharing the in-memory database with the store fixtures."""
    return EventClient(db)
