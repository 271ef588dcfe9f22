# tests/test_live.py
import asyncio
import json

import redis
import redis.asyncio as aioredis

from storefront.services.live_hub import LiveHub
from storefront.services.live_relay import LiveRelay

from conftest import TestingSessionLocal


class DeadSocket:
    async def send_json(self, data):
        raise RuntimeError("socket closed")


class CollectingSocket:
    def __init__(self):
        self.messages = []

    async def send_json(self, data):
        self.messages.append(data)


class PublishingRedis:
    def __init__(self, fail=False):
        self.published = []
        self.fail = fail

    def publish(self, channel, message):
        if self.fail:
            raise redis.ConnectionError("redis down")
        self.published.append((channel, json.loads(message)))
        return 1


class FakePubSub:
    def __init__(self, messages):
        self.messages = messages
        self.channels = []
        self.closed = False

    async def subscribe(self, channel):
        self.channels.append(channel)

    async def listen(self):
        for message in self.messages:
            yield message
        # dalej jak prawdziwy kanal: czeka az hub zostanie zatrzymany
        await asyncio.Event().wait()

    async def aclose(self):
        self.closed = True


class FakeAsyncRedis:
    def __init__(self, pubsub):
        self._pubsub = pubsub

    def pubsub(self):
        return self._pubsub

    async def aclose(self):
        pass


class TestAnalyticsSocket:
    def test_dashboard_subscription(self, client, make):
        make.product()

        with client.websocket_connect("/ws/analytics") as ws:
            ws.send_json({"event": "subscribe_dashboard"})
            message = ws.receive_json()

        assert message["event"] == "dashboard_update"
        assert message["data"]["total_orders"] == 0
        assert "timestamp" in message["data"]

    def test_product_subscription(self, client, make):
        product = make.product(name="Speaker", stock=7)

        with client.websocket_connect("/ws/analytics") as ws:
            ws.send_json({"event": "subscribe_product", "product_id": product.id})
            message = ws.receive_json()

        assert message["event"] == "product_analytics"
        assert message["data"]["product_name"] == "Speaker"
        assert message["data"]["current_stock"] == 7

    def test_errors_keep_connection_open(self, client):
        with client.websocket_connect("/ws/analytics") as ws:
            ws.send_json({"event": "subscribe_product", "product_id": 9999})
            missing = ws.receive_json()
            ws.send_json({"event": "dance"})
            unknown = ws.receive_json()
            ws.send_json({"event": "subscribe_product"})
            no_id = ws.receive_json()

        assert missing == {"event": "error", "data": {"message": "Product 9999 not found"}}
        assert unknown == {"event": "error", "data": {"message": "Unknown event: dance"}}
        assert no_id["data"]["message"] == "product_id is required"


class TestLiveHub:
    def test_publish_without_loop_is_dropped(self):
        assert LiveHub(session_factory=TestingSessionLocal).publish("order_update", {"id": 1}) is False

    def test_dead_sockets_are_evicted_on_broadcast(self):
        hub = LiveHub(session_factory=TestingSessionLocal)
        alive, dead = CollectingSocket(), DeadSocket()
        hub._clients.update({alive, dead})
        hub._dashboard.add(dead)

        asyncio.run(hub.broadcast("inventory_alert", {"product_ids": [1]}))

        assert alive.messages == [{"event": "inventory_alert", "data": {"product_ids": [1]}}]
        assert hub._clients == {alive}
        assert dead not in hub._dashboard

    def test_publish_reaches_sockets_through_running_loop(self):
        hub = LiveHub(session_factory=TestingSessionLocal, dashboard_interval=60, product_interval=60)
        socket = CollectingSocket()
        hub._clients.add(socket)

        async def scenario():
            await hub.start()
            try:
                assert hub.running
                # publish z innego watku, tak jak robia to synchroniczne endpointy
                published = await asyncio.to_thread(hub.publish, "order_update", {"order_id": 5})
                for _ in range(50):
                    if socket.messages:
                        break
                    await asyncio.sleep(0.01)
                return published
            finally:
                hub._clients.discard(socket)
                await hub.stop()

        assert asyncio.run(scenario()) is True
        assert socket.messages == [{"event": "order_update", "data": {"order_id": 5}}]
        assert hub.running is False


class TestLiveRelay:
    def test_publish_sends_encoded_event_on_channel(self):
        client = PublishingRedis()
        relay = LiveRelay(channel="test:live", client=client)

        assert relay.publish("inventory_alert", {"product_id": 4, "stock_level": 1}) is True
        assert client.published == [
            ("test:live", {"event": "inventory_alert", "data": {"product_id": 4, "stock_level": 1}})
        ]

    def test_redis_outage_is_swallowed(self):
        relay = LiveRelay(channel="test:live", client=PublishingRedis(fail=True))

        assert relay.publish("inventory_alert", {"product_id": 4}) is False

    def test_relayed_message_is_broadcast(self):
        hub = LiveHub(session_factory=TestingSessionLocal)
        socket = CollectingSocket()
        hub._clients.add(socket)

        asyncio.run(hub.dispatch_relayed(json.dumps({"event": "inventory_alert", "data": {"product_id": 4}})))
        asyncio.run(hub.dispatch_relayed("not json"))

        assert socket.messages == [{"event": "inventory_alert", "data": {"product_id": 4}}]

    def test_running_hub_forwards_worker_events(self, monkeypatch):
        event = {"event": "inventory_alert", "data": {"product_id": 4, "stock_level": 1}}
        pubsub = FakePubSub([{"type": "subscribe", "data": 1}, {"type": "message", "data": json.dumps(event)}])
        monkeypatch.setattr(aioredis.Redis, "from_url", lambda url, **kwargs: FakeAsyncRedis(pubsub))
        hub = LiveHub(
            session_factory=TestingSessionLocal,
            dashboard_interval=60,
            product_interval=60,
            relay_url="redis://relay:6379/0",
            relay_channel="test:live",
        )
        socket = CollectingSocket()
        hub._clients.add(socket)

        async def scenario():
            await hub.start()
            try:
                for _ in range(50):
                    if socket.messages:
                        break
                    await asyncio.sleep(0.01)
            finally:
                hub._clients.discard(socket)
                await hub.stop()

        asyncio.run(scenario())

        assert pubsub.channels == ["test:live"]
        assert socket.messages == [event]
        assert pubsub.closed is True
