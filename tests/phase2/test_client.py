"""Tests for EventClient: connect from settings, facade delegation."""

import pytest

from eventledger.client import EventClient
from eventledger.config import Settings
from eventledger.events import ConcurrencyConflictError
from eventledger.models import StreamDefinition, StreamQuery
from tests.fixtures import (
    ITEM_TYPES,
    LIST_CREATED,
    LIST_LIFECYCLE_TYPES,
    make_item_added,
    make_list_created,
    make_todo_events,
    new_id,
)


class TestConnect:
    async def test_connect_creates_file_database(self, tmp_path):
        settings = Settings(database_path=str(tmp_path / "events.db"))
        async with await EventClient.connect(settings) as client:
            stored = await client.save_event(make_list_created(new_id()))

        async with await EventClient.connect(settings) as reopened:
            assert await reopened.get_latest_event(LIST_CREATED) == stored

    async def test_connect_reads_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("EVENTLEDGER_DATABASE_PATH", str(tmp_path / "env.db"))
        monkeypatch.setenv("EVENTLEDGER_EVENTS_TABLE", "ledger_events")
        async with await EventClient.connect() as client:
            await client.save_event(make_list_created(new_id()))
            row = await client._db.fetchone("SELECT COUNT(*) AS n FROM ledger_events")
            assert row["n"] == 1
        assert (tmp_path / "env.db").exists()


class TestFacade:
    async def test_event_operations(self, client):
        events, list_id, _ = make_todo_events()
        stored = await client.save_events(events)

        assert await client.get_event_stream(ITEM_TYPES, data={"listId": list_id}) == stored[1:]
        merged = await client.get_event_streams([
            StreamQuery(event_types=LIST_LIFECYCLE_TYPES, data={"listId": list_id}),
            StreamQuery(event_types=ITEM_TYPES, data={"listId": list_id}),
        ])
        assert merged == stored

        validated = await client.save_event_with_stream_validation(
            make_item_added(list_id, new_id()),
            stored[-1].id,
            [StreamDefinition(types=ITEM_TYPES, identifier={"listId": list_id})],
        )
        assert validated.id > stored[-1].id

    async def test_projection_operations(self, client):
        result = await client.save_projection("TODO_LIST", "L1", {"items": ["a"]}, "01A")
        assert result.status == "created"

        record = await client.get_projection("TODO_LIST", "L1")
        assert record.data == {"items": ["a"]}
        assert record.latest_event_id == "01A"

        await client.save_projection("TODO_LIST", "L2", {"items": []}, "01B")
        assert [r.latest_event_id for r in await client.query_projections("TODO_LIST")] == ["01A", "01B"]



class TestCallerTransaction:
    """Passing conn= runs the call inside the caller's own transaction."""

    async def test_rolled_back_transaction_discards_events(self, client):
        events, list_id, _ = make_todo_events()
        with pytest.raises(RuntimeError):
            async with client.transaction() as conn:
                stored = await client.save_events(events, conn=conn)
                await client.save_event(make_item_added(list_id, new_id()), conn=conn)

                # Visible inside the transaction
                seen = await client.get_event_stream(
                    ITEM_TYPES, data={"listId": list_id}, conn=conn
                )
                assert len(seen) == 3
                assert await client.get_latest_event(LIST_CREATED, conn=conn) == stored[0]
                raise RuntimeError("abort")

        assert await client.get_event_streams([
            StreamQuery(event_types=LIST_LIFECYCLE_TYPES + ITEM_TYPES, data={"listId": list_id}),
        ]) == []

    async def test_committed_transaction_keeps_events_and_other_writes(self, client):
        list_id = new_id()
        async with client.transaction() as conn:
            created = await client.save_event(make_list_created(list_id), conn=conn)
            await conn.execute(
                "INSERT INTO projections (type, id, data, latest_event_id) VALUES (?, ?, ?, ?)",
                ("LIST_NAMES", list_id, '{"name": "Test List"}', created.id),
            )
            merged = await client.get_event_streams(
                [StreamQuery(event_types=LIST_LIFECYCLE_TYPES, data={"listId": list_id})],
                conn=conn,
            )
            assert merged == [created]

        assert await client.get_latest_event(LIST_CREATED, data={"listId": list_id}) == created
        record = await client.get_projection("LIST_NAMES", list_id)
        assert record.latest_event_id == created.id

    async def test_conflict_inside_transaction_writes_nothing(self, client):
        list_id = new_id()
        created = await client.save_event(make_list_created(list_id))
        await client.save_event(make_item_added(list_id, new_id()))
        stream = StreamDefinition(types=ITEM_TYPES, identifier={"listId": list_id})

        with pytest.raises(ConcurrencyConflictError):
            async with client.transaction() as conn:
                await client.save_event(make_item_added(list_id, new_id()), conn=conn)
                await client.save_event_with_stream_validation(
                    make_item_added(list_id, new_id()), created.id, [stream], conn=conn
                )

        items = await client.get_event_stream(ITEM_TYPES, data={"listId": list_id})
        assert len(items) == 1
