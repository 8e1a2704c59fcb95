"""Canonical data structures for events, streams and projections.

Defined once here, referenced everywhere else. Event payloads are opaque to
the store: they are whatever JSON-able mapping the application supplies.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

FilterScalar = str | int | float | bool

# field name -> value (equality) or list of values (any-match); None is ignored
DataFilter = dict[str, FilterScalar | list[FilterScalar] | None]


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class EventInput(BaseModel):
    """An event as written by callers. id is assigned on append if absent."""

    type: str
    data: dict[str, Any]
    id: str | None = None


class StoredEvent(BaseModel):
    """An event as it lives in the events table. Never mutated."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    data: dict[str, Any]
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Stream shapes (request-scoped, never persisted)
# ---------------------------------------------------------------------------


class StreamQuery(BaseModel):
    """One filtered read: event types, optional data filter, optional cursor."""

    event_types: list[str]
    data: DataFilter | None = None
    after: str | None = None


class StreamDefinition(BaseModel):
    """A logical stream a conditional append must not conflict with."""

    types: list[str]
    identifier: DataFilter = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------


class ProjectionRecord(BaseModel):
    data: dict[str, Any]
    latest_event_id: str


class SaveProjectionResult(BaseModel):
    """Outcome of a conditional projection upsert.

    On "skipped", data and latest_event_id are the stored values, not the
    ones the caller proposed.
    """

    status: Literal["created", "updated", "skipped"]
    type: str
    id: str
    data: dict[str, Any]
    latest_event_id: str
