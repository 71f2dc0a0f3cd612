"""Tests for lifecycle event envelopes and emitters."""

import json

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer as BusServer
import pytest_asyncio

from transfer.events import (
    EventType,
    HttpEventEmitter,
    LoggingEventEmitter,
    create_event_emitter,
    new_event,
)


def test_envelope_fields():
    event = new_event(EventType.CHUNK_CREATED, "file_x_chunk_0", {"chunk_index": 0}, source="transfer")
    envelope = json.loads(event.to_json())

    assert set(envelope) == {"id", "type", "timestamp", "source", "data"}
    assert envelope["type"] == "file.chunk.created"
    assert envelope["source"] == "transfer"
    assert envelope["id"].startswith("evt_")
    assert envelope["data"] == {"chunk_index": 0}


def test_event_ids_are_unique():
    ids = {new_event(EventType.UPLOAD_STARTED, "k", {}).id for _ in range(100)}
    assert len(ids) == 100


def test_create_event_emitter_without_bus():
    assert isinstance(create_event_emitter(""), LoggingEventEmitter)
    assert isinstance(create_event_emitter("http://bus:8082"), HttpEventEmitter)


@pytest.mark.asyncio
async def test_logging_emitter_reports_undelivered():
    outcome = await LoggingEventEmitter().publish(new_event(EventType.UPLOAD_STARTED, "file_x", {}))
    assert outcome.delivered is False
    assert outcome.error


@pytest.mark.asyncio
async def test_unreachable_bus_reports_undelivered():
    emitter = HttpEventEmitter("http://127.0.0.1:1", topic="file.events", timeout=1)
    try:
        outcome = await emitter.publish(new_event(EventType.UPLOAD_STARTED, "file_x", {}))
    finally:
        await emitter.close()

    assert outcome.delivered is False
    assert outcome.event_type is EventType.UPLOAD_STARTED
    assert outcome.error


class TestHttpEmitter:

    @pytest_asyncio.fixture
    async def bus(self):
        received = []
        app = web.Application()

        async def produce(request):
            if request.match_info["topic"] == "broken":
                return web.json_response({"error": "nope"}, status=500)
            received.append({
                "topic": request.match_info["topic"],
                "content_type": request.headers.get("Content-Type"),
                "body": await request.json(),
            })
            return web.json_response({"offsets": [{"partition": 0, "offset": 1}]})

        app.router.add_post("/topics/{topic}", produce)
        server = BusServer(app)
        await server.start_server()
        yield str(server.make_url("")).rstrip("/"), received
        await server.close()

    @pytest.mark.asyncio
    async def test_publish_posts_record(self, bus):
        url, received = bus
        emitter = HttpEventEmitter(url, topic="file.events", timeout=5)
        event = new_event(EventType.UPLOAD_COMPLETED, "file_x", {"file_size": 10})
        try:
            outcome = await emitter.publish(event)
        finally:
            await emitter.close()

        assert outcome.delivered is True
        assert outcome.event_id == event.id
        assert received[0]["topic"] == "file.events"
        assert received[0]["content_type"] == "application/vnd.kafka.json.v2+json"
        record = received[0]["body"]["records"][0]
        assert record["key"] == "file_x"
        assert record["value"]["type"] == "file.upload.completed"
        assert record["value"]["data"] == {"file_size": 10}

    @pytest.mark.asyncio
    async def test_error_status_reports_undelivered(self, bus):
        url, _ = bus
        emitter = HttpEventEmitter(url, topic="broken", timeout=5)
        try:
            outcome = await emitter.publish(new_event(EventType.FILE_DELETED, "file_x", {}))
        finally:
            await emitter.close()

        assert outcome.delivered is False
