"""Event bus, Redis relay, and live stream tests"""
import asyncio
import json
import threading
import time
from unittest.mock import Mock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from snapmatch.api.public_events import photo_update_stream
from snapmatch.core.config import settings
from snapmatch.services.event_service import publish_photo_update
from snapmatch.services.realtime.event_bus import EventBus, PhotoUpdateType, topic_for_event
from snapmatch.services.realtime.redis_relay import RedisEventRelay


class FakeRequest:
    """Request stand-in whose client disconnects on demand"""

    def __init__(self):
        self.disconnected = False

    async def is_disconnected(self):
        return self.disconnected


@pytest.mark.high
class TestEventBus:
    """Test in-process topic fan-out"""

    def test_publish_reaches_topic_listeners_only(self, bus):
        received, elsewhere = [], []
        bus.subscribe("event:e1", received.append)
        bus.subscribe("event:e2", elsewhere.append)

        delivered = bus.publish("event:e1", {"type": "photo.published"})

        assert delivered == 1
        assert received == [{"type": "photo.published"}]
        assert elsewhere == []

    def test_no_delivery_after_cancel(self, bus):
        received = []
        subscription = bus.subscribe("event:e1", received.append)
        subscription.cancel()

        assert bus.publish("event:e1", {"type": "photo.published"}) == 0
        assert received == []
        assert not subscription.active
        assert bus.subscriber_count("event:e1") == 0

    def test_cancel_racing_publisher_stops_delivery(self, bus):
        received = []
        first_delivery = threading.Event()
        stop = threading.Event()
        publish_count = [0]

        def listener(message):
            received.append(message["n"])
            first_delivery.set()

        subscription = bus.subscribe("event:e1", listener)

        def publisher():
            while not stop.is_set():
                bus.publish("event:e1", {"n": publish_count[0]})
                publish_count[0] += 1

        thread = threading.Thread(target=publisher, daemon=True)
        thread.start()
        try:
            assert first_delivery.wait(timeout=5)
            subscription.cancel()
            delivered_at_cancel = len(received)
            published_at_cancel = publish_count[0]

            # Let the publisher run well past the cancel
            deadline = time.monotonic() + 5
            while publish_count[0] < published_at_cancel + 200 and time.monotonic() < deadline:
                time.sleep(0.001)

            assert publish_count[0] >= published_at_cancel + 200
            assert len(received) == delivered_at_cancel
        finally:
            stop.set()
            thread.join(timeout=5)

    def test_listener_cancelled_from_another_listener_mid_publish(self, bus):
        received = []
        holder = {}

        def canceller(message):
            holder["victim"].cancel()

        bus.subscribe("event:e1", canceller)
        holder["victim"] = bus.subscribe("event:e1", received.append)

        assert bus.publish("event:e1", {"type": "photo.uploaded"}) == 1
        assert received == []

    def test_cancel_is_idempotent(self, bus):
        subscription = bus.subscribe("event:e1", lambda message: None)
        subscription.cancel()
        subscription.cancel()
        assert bus.subscriber_count("event:e1") == 0

    def test_failing_listener_does_not_block_others(self, bus):
        received = []

        def broken(message):
            raise RuntimeError("viewer went away")

        bus.subscribe("event:e1", broken)
        bus.subscribe("event:e1", received.append)

        assert bus.publish("event:e1", {"type": "photo.uploaded"}) == 1
        assert received == [{"type": "photo.uploaded"}]

    def test_listener_may_cancel_itself_during_publish(self, bus):
        received = []
        holder = {}

        def once(message):
            received.append(message)
            holder["subscription"].cancel()

        holder["subscription"] = bus.subscribe("event:e1", once)
        bus.publish("event:e1", {"type": "photo.uploaded"})
        bus.publish("event:e1", {"type": "photo.published"})

        assert received == [{"type": "photo.uploaded"}]

    def test_close_cancels_and_refuses_subscriptions(self):
        bus = EventBus()
        subscription = bus.subscribe("event:e1", lambda message: None)
        bus.close()

        assert not subscription.active
        with pytest.raises(RuntimeError):
            bus.subscribe("event:e1", lambda message: None)


@pytest.mark.high
class TestPhotoUpdatePublishing:
    """Test photo update broadcasting through the configured broker"""

    def test_memory_broker_publishes_locally(self, bus):
        received = []
        bus.subscribe(topic_for_event("e1"), received.append)

        assert publish_photo_update(bus, "e1", "p1", PhotoUpdateType.PUBLISHED) == 1
        assert received[0]["type"] == "photo.published"
        assert received[0]["eventId"] == "e1"
        assert received[0]["photoId"] == "p1"
        assert received[0]["timestamp"]

    def test_redis_broker_publishes_to_channel(self, bus, mock_redis, monkeypatch):
        monkeypatch.setattr(settings, "REALTIME_BROKER", "redis")
        local = []
        bus.subscribe(topic_for_event("e1"), local.append)
        pubsub = mock_redis.pubsub()
        pubsub.subscribe(topic_for_event("e1"))
        pubsub.get_message(timeout=1)

        assert publish_photo_update(bus, "e1", "p1", PhotoUpdateType.UPLOADED) == 1

        message = pubsub.get_message(timeout=1)
        assert json.loads(message["data"])["type"] == "photo.uploaded"
        # Local viewers are reached through the relay, not directly
        assert local == []

    def test_redis_failure_is_not_raised(self, bus, monkeypatch):
        monkeypatch.setattr(settings, "REALTIME_BROKER", "redis")
        failing = Mock()
        failing.publish.side_effect = RedisConnectionError("connection refused")

        with patch("snapmatch.services.event_service.get_redis_client", return_value=failing):
            assert publish_photo_update(bus, "e1", "p1", PhotoUpdateType.UPLOADED) == 0


@pytest.mark.medium
class TestRedisRelay:
    """Test forwarding of Redis pub/sub messages onto the local bus"""

    def test_pattern_message_is_forwarded(self, bus):
        received = []
        bus.subscribe("event:e1", received.append)
        relay = RedisEventRelay(bus, redis_client=Mock())

        delivered = relay.handle_message({
            "type": "pmessage",
            "pattern": "event:*",
            "channel": "event:e1",
            "data": json.dumps({"type": "photo.published", "photoId": "p1"}),
        })

        assert delivered == 1
        assert received == [{"type": "photo.published", "photoId": "p1"}]

    @pytest.mark.parametrize("message", [
        {"type": "psubscribe", "channel": "event:*", "data": 1},
        {"type": "pmessage", "channel": "event:e1", "data": "not json"},
        {"type": "pmessage", "channel": "event:e1", "data": json.dumps({"photoId": "p1"})},
        {"type": "pmessage", "channel": None, "data": json.dumps({"type": "photo.published"})},
        None,
    ])
    def test_ignores_invalid_messages(self, bus, message):
        received = []
        bus.subscribe("event:e1", received.append)
        relay = RedisEventRelay(bus, redis_client=Mock())

        assert relay.handle_message(message) == 0
        assert received == []


@pytest.mark.high
class TestPhotoUpdateStream:
    """Test the server-sent events generator"""

    @pytest.mark.asyncio
    async def test_streams_updates_and_unsubscribes(self, bus):
        request = FakeRequest()
        stream = photo_update_stream(request, bus, "e1", keepalive_seconds=5)

        assert await stream.__anext__() == "retry: 4000\n\n"
        assert bus.subscriber_count(topic_for_event("e1")) == 1

        publish_photo_update(bus, "e1", "p1", PhotoUpdateType.PUBLISHED)
        frame = await asyncio.wait_for(stream.__anext__(), timeout=2)

        assert frame.startswith("data: ")
        assert json.loads(frame[len("data: "):].strip())["photoId"] == "p1"

        await stream.aclose()
        assert bus.subscriber_count(topic_for_event("e1")) == 0

    @pytest.mark.asyncio
    async def test_sends_keepalive_when_idle(self, bus):
        stream = photo_update_stream(FakeRequest(), bus, "e1", keepalive_seconds=0.01)

        await stream.__anext__()
        assert await asyncio.wait_for(stream.__anext__(), timeout=2) == ": keepalive\n\n"
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_stops_when_client_disconnects(self, bus):
        request = FakeRequest()
        stream = photo_update_stream(request, bus, "e1", keepalive_seconds=0.01)

        await stream.__anext__()
        request.disconnected = True

        with pytest.raises(StopAsyncIteration):
            await asyncio.wait_for(stream.__anext__(), timeout=2)
        assert bus.subscriber_count(topic_for_event("e1")) == 0
