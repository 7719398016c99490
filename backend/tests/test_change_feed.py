"""
Tests for the change feed, the SSE stream and the working-set snapshot.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from printshop.api.v1.sync import KEEPALIVE_COMMENT, change_stream, format_sse
from printshop.core.change_feed import ChangeAction, ChangeEvent, ChangeFeed, ChangeTopic, change_feed
from printshop.services.order_service import order_service
from printshop.services.production_service import production_service
from printshop.services.sync_service import sync_service


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed(queue_size=2)


def fake_request(*disconnected: bool) -> MagicMock:
    request = MagicMock()
    request.is_disconnected = AsyncMock(side_effect=list(disconnected))
    return request


# ============================================================
# Tests for ChangeFeed
# ============================================================


class TestChangeFeed:
    """Tests for subscribe, listen and publish."""

    def test_subscribe_and_unsubscribe(self, feed):
        """Test la callback riceve gli eventi finché resta iscritta."""
        received = []
        unsubscribe = feed.subscribe(received.append)

        assert feed.notify(ChangeTopic.ORDERS, ChangeAction.INSERT, "INV-00001") == 1
        unsubscribe()
        assert feed.notify(ChangeTopic.ORDERS, ChangeAction.DELETE, "INV-00001") == 0

        assert [(e.topic, e.action, e.entity_id) for e in received] == [
            (ChangeTopic.ORDERS, ChangeAction.INSERT, "INV-00001")
        ]
        assert feed.subscriber_count == 0

    def test_topic_filter(self, feed):
        """Test filtro per argomento."""
        received = []
        feed.subscribe(received.append, topics=[ChangeTopic.CATALOG])

        feed.notify(ChangeTopic.ORDERS, ChangeAction.INSERT)
        feed.notify(ChangeTopic.CATALOG, ChangeAction.UPDATE)

        assert [e.topic for e in received] == [ChangeTopic.CATALOG]

    def test_failing_handler_does_not_stop_others(self, feed):
        """Test un sottoscrittore che fallisce non blocca gli altri."""
        received = []

        def broken(event: ChangeEvent) -> None:
            raise RuntimeError("handler rotto")

        feed.subscribe(broken)
        feed.subscribe(received.append)

        assert feed.notify(ChangeTopic.SETTINGS, ChangeAction.UPDATE) == 1
        assert len(received) == 1

    async def test_listen_queue_receives_events(self, feed):
        """Test la coda riceve gli eventi e viene rimossa all'uscita."""
        async with feed.listen([ChangeTopic.RECEIVABLES]) as queue:
            assert feed.subscriber_count == 1
            feed.notify(ChangeTopic.ORDERS, ChangeAction.UPDATE, "INV-00001")
            feed.notify(ChangeTopic.RECEIVABLES, ChangeAction.UPDATE, "INV-00001")

            event = queue.get_nowait()
            assert event.topic == ChangeTopic.RECEIVABLES
            assert queue.empty()

        assert feed.subscriber_count == 0

    async def test_full_queue_drops_events(self, feed):
        """Test coda piena: l'evento viene scartato senza errori."""
        async with feed.listen() as queue:
            delivered = [feed.notify(ChangeTopic.ORDERS, ChangeAction.UPDATE) for _ in range(3)]

            assert delivered == [1, 1, 0]
            assert queue.qsize() == 2

    def test_event_to_dict(self):
        """Test serializzazione dell'evento."""
        event = ChangeEvent(topic=ChangeTopic.ORDERS, action=ChangeAction.DELETE, entity_id="INV-00003")
        data = event.to_dict()

        assert data["topic"] == "orders"
        assert data["action"] == "delete"
        assert data["entity_id"] == "INV-00003"
        assert data["occurred_at"].endswith("+00:00")


# ============================================================
# Tests for the SSE stream
# ============================================================


class TestChangeStream:
    """Tests for format_sse and change_stream."""

    def test_format_sse(self):
        """Test formato text/event-stream."""
        event = ChangeEvent(topic=ChangeTopic.RECEIVABLES, action=ChangeAction.UPDATE, entity_id="INV-00001")
        chunk = format_sse(event)

        lines = chunk.split("\n")
        assert lines[0] == "event: receivables"
        assert json.loads(lines[1].removeprefix("data: "))["entity_id"] == "INV-00001"
        assert chunk.endswith("\n\n")

    async def test_stream_forwards_events_and_keepalive(self):
        """Test evento inoltrato, poi keep-alive, poi chiusura alla disconnessione."""
        stream = change_stream(fake_request(False, False, True), None, keepalive_seconds=0.01)

        assert await stream.__anext__() == ": connected\n\n"
        change_feed.notify(ChangeTopic.ORDERS, ChangeAction.INSERT, "INV-00001")
        chunks = [chunk async for chunk in stream]

        assert chunks[0].startswith("event: orders\n")
        assert chunks[1] == KEEPALIVE_COMMENT
        assert len(chunks) == 2

    async def test_stream_respects_topics(self):
        """Test argomenti non richiesti non vengono inoltrati."""
        stream = change_stream(fake_request(False, True), [ChangeTopic.CATALOG], keepalive_seconds=0.01)

        await stream.__anext__()
        change_feed.notify(ChangeTopic.ORDERS, ChangeAction.INSERT, "INV-00001")
        chunks = [chunk async for chunk in stream]

        assert chunks == [KEEPALIVE_COMMENT]

    async def test_listener_removed_after_disconnect(self):
        """Test la coda del client viene rimossa a stream chiuso."""
        before = change_feed.subscriber_count
        stream = change_stream(fake_request(True), None, keepalive_seconds=0.01)

        await stream.__anext__()
        assert change_feed.subscriber_count == before + 1
        assert [chunk async for chunk in stream] == []
        assert change_feed.subscriber_count == before


# ============================================================
# Tests for SyncService
# ============================================================


class TestSnapshot:
    """Tests for get_snapshot."""

    def test_sections_for_topics(self):
        """Test sezioni da rileggere per argomento."""
        topics, sections = sync_service.sections_for([ChangeTopic.RECEIVABLES, ChangeTopic.RECEIVABLES])

        assert topics == [ChangeTopic.RECEIVABLES]
        assert sections == {"receivables", "unprocessed_orders", "board"}

    def test_no_topics_means_everything(self):
        """Test nessun argomento: tutte le sezioni."""
        topics, sections = sync_service.sections_for(None)

        assert topics == list(ChangeTopic)
        assert "catalog" in sections and "sequence" in sections

    async def test_full_snapshot(self, db, banner_order):
        """Test snapshot completo dell'insieme di lavoro."""
        queued = await order_service.create(db, banner_order)
        printing = await order_service.create(db, banner_order)
        await production_service.process_order(db, printing.id)

        snapshot = await sync_service.get_snapshot(db)

        assert {o.id for o in snapshot.orders} == {queued.id, printing.id}
        assert [o.id for o in snapshot.unprocessed_orders] == [queued.id]
        assert [r.id for r in snapshot.receivables] == [printing.id]
        assert [c.order_id for c in snapshot.board.printing] == [printing.id]
        assert len(snapshot.catalog.customers) == 2
        assert snapshot.billing.due_date_days == 7
        assert snapshot.sequence.next_nota == "INV-00003"

    async def test_partial_snapshot(self, db, catalog):
        """Test snapshot limitato alle impostazioni."""
        snapshot = await sync_service.get_snapshot(db, [ChangeTopic.SETTINGS])

        assert snapshot.topics == [ChangeTopic.SETTINGS]
        assert snapshot.billing.rounding_increment == 500
        assert snapshot.sequence.current_value == 1
        assert snapshot.orders is None
        assert snapshot.board is None
        assert snapshot.catalog is None
