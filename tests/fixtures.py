"""Shared test helpers: a small to-do list domain used across the suite."""

from pydantic import BaseModel
from ulid import ULID

from eventledger.models import EventInput

# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

LIST_CREATED = "LIST_CREATED"
LIST_DELETED = "LIST_DELETED"
ITEM_ADDED = "ITEM_ADDED"
ITEM_REMOVED = "ITEM_REMOVED"
ITEM_COMPLETED = "ITEM_COMPLETED"
ITEM_UNCOMPLETED = "ITEM_UNCOMPLETED"

LIST_LIFECYCLE_TYPES = [LIST_CREATED, LIST_DELETED]
ITEM_TYPES = [ITEM_ADDED, ITEM_REMOVED, ITEM_COMPLETED, ITEM_UNCOMPLETED]


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class ListCreatedPayload(BaseModel):
    listId: str
    listName: str


class ListDeletedPayload(BaseModel):
    listId: str


class ItemAddedPayload(BaseModel):
    listId: str
    itemId: str
    itemName: str


class ItemRefPayload(BaseModel):
    """ITEM_REMOVED, ITEM_COMPLETED and ITEM_UNCOMPLETED all carry just the refs."""

    listId: str
    itemId: str


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def new_id() -> str:
    return str(ULID())


def make_list_created(list_id: str, name: str = "Test List") -> EventInput:
    payload = ListCreatedPayload(listId=list_id, listName=name)
    return EventInput(type=LIST_CREATED, data=payload.model_dump())


def make_list_deleted(list_id: str) -> EventInput:
    payload = ListDeletedPayload(listId=list_id)
    return EventInput(type=LIST_DELETED, data=payload.model_dump())


def make_item_added(list_id: str, item_id: str, name: str = "Test Item") -> EventInput:
    payload = ItemAddedPayload(listId=list_id, itemId=item_id, itemName=name)
    return EventInput(type=ITEM_ADDED, data=payload.model_dump())


def make_item_event(event_type: str, list_id: str, item_id: str) -> EventInput:
    payload = ItemRefPayload(listId=list_id, itemId=item_id)
    return EventInput(type=event_type, data=payload.model_dump())


def make_todo_events(
    list_id: str | None = None, item_id: str | None = None
) -> tuple[list[EventInput], str, str]:
    """LIST_CREATED, ITEM_ADDED, ITEM_COMPLETED for one list and one item.

    Returns (events, list_id, item_id).
    """
    list_id = list_id or new_id()
    item_id = item_id or new_id()
    events = [
        make_list_created(list_id),
        make_item_added(list_id, item_id),
        make_item_event(ITEM_COMPLETED, list_id, item_id),
    ]
    return events, list_id, item_id
