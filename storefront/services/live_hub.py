# storefront/services/live_hub.py
import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Set

import redis
import redis.asyncio as aioredis
from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from storefront.data.database import SessionLocal
from storefront.services.analytics_service import AnalyticsService
from storefront.utils.settings import (
    DASHBOARD_PUSH_INTERVAL,
    LIVE_RELAY_CHANNEL,
    LIVE_RELAY_RECONNECT_SECONDS,
    PRODUCT_PUSH_INTERVAL,
    REDIS_URL,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class LiveHub:
    """
    Kanal live dla panelu admina (WebSocket /ws/analytics).
    -subskrypcje: dashboard albo konkretny produkt
    -petla w tle co N sekund liczy agregaty i rozsyla je subskrybentom
    -publish() jest thread-safe: synchroniczne endpointy (threadpool) wrzucaja
     eventy na petle asyncio przez run_coroutine_threadsafe
    -z relay_url hub subskrybuje kanal redis, na ktory LiveRelay publikuje
     eventy z workerow celery (tam nie ma petli huba)
    Martwe sockety sa wyrzucane przy pierwszym nieudanym wyslaniu.
    """

    def __init__(
        self,
        session_factory: Callable = SessionLocal,
        dashboard_interval: float = DASHBOARD_PUSH_INTERVAL,
        product_interval: float = PRODUCT_PUSH_INTERVAL,
        relay_url: str | None = None,
        relay_channel: str = LIVE_RELAY_CHANNEL,
    ):
        self.session_factory = session_factory
        self.dashboard_interval = dashboard_interval
        self.product_interval = product_interval
        self.relay_url = relay_url
        self.relay_channel = relay_channel

        self._clients: Set[WebSocket] = set()
        self._dashboard: Set[WebSocket] = set()
        self._products: Dict[int, Set[WebSocket]] = {}

        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: List[asyncio.Task] = []

    # =====================================================
    # LIFECYCLE
    # =====================================================
    async def start(self):
        self._loop = asyncio.get_running_loop()
        self._tasks = [
            asyncio.create_task(self._every(self.dashboard_interval, self._push_dashboard)),
            asyncio.create_task(self._every(self.product_interval, self._push_products)),
        ]
        if self.relay_url:
            self._tasks.append(asyncio.create_task(self._listen_relay()))
        logger.info("LiveHub wystartowal")

    async def stop(self):
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._loop = None

        for ws in list(self._clients):
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"Zamkniecie socketu nieudane: {e}")
        self._clients.clear()
        self._dashboard.clear()
        self._products.clear()
        logger.info("LiveHub zatrzymany")

    @property
    def running(self) -> bool:
        return self._loop is not None

    # =====================================================
    # CONNECTIONS
    # =====================================================
    async def connect(self, ws: WebSocket):
        await ws.accept()
        self._clients.add(ws)
        logger.info(f"Analytics client connected ({len(self._clients)} total)")

    def disconnect(self, ws: WebSocket):
        self._clients.discard(ws)
        self._dashboard.discard(ws)
        for product_id in list(self._products):
            sockets = self._products[product_id]
            sockets.discard(ws)
            if not sockets:
                del self._products[product_id]

    async def handle(self, ws: WebSocket, message: Dict[str, Any]):
        event = message.get("event") if isinstance(message, dict) else None

        if event == "subscribe_dashboard":
            self._dashboard.add(ws)
            data = await asyncio.to_thread(self.dashboard_snapshot)
            await self._send(ws, "dashboard_update", data)
            return

        if event == "subscribe_product":
            try:
                product_id = int(message.get("product_id"))
            except (TypeError, ValueError):
                await self._send(ws, "error", {"message": "product_id is required"})
                return

            data = await asyncio.to_thread(self.product_snapshot, product_id)
            if data is None:
                await self._send(ws, "error", {"message": f"Product {product_id} not found"})
                return
            self._products.setdefault(product_id, set()).add(ws)
            await self._send(ws, "product_analytics", data)
            return

        await self._send(ws, "error", {"message": f"Unknown event: {event}"})

    # =====================================================
    # SNAPSHOTS (sync, odpalane w watku)
    # =====================================================
    def dashboard_snapshot(self) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            data = AnalyticsService(db).live_dashboard()
        finally:
            db.close()
        data["timestamp"] = datetime.now(timezone.utc)
        return data

    def product_snapshot(self, product_id: int) -> Dict[str, Any] | None:
        db = self.session_factory()
        try:
            data = AnalyticsService(db).live_product(product_id)
        finally:
            db.close()
        if data is not None:
            data["timestamp"] = datetime.now(timezone.utc)
        return data

    # =====================================================
    # BROADCAST
    # =====================================================
    async def broadcast(self, event: str, data: Any, sockets=None):
        targets = list(self._clients if sockets is None else sockets)
        for ws in targets:
            await self._send(ws, event, data)

    def publish(self, event: str, data: Any) -> bool:
        """Wywolywane z kodu synchronicznego, nigdy nie rzuca."""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug(f"LiveHub nie dziala, event {event} pominiety")
            return False
        try:
            asyncio.run_coroutine_threadsafe(self.broadcast(event, data), loop)
            return True
        except RuntimeError as e:
            logger.warning(f"Publikacja eventu {event} nieudana: {e}")
            return False

    async def dispatch_relayed(self, raw: str):
        """Wiadomosc z kanalu relay -> broadcast do wszystkich klientow."""
        try:
            message = json.loads(raw)
            event, data = message["event"], message.get("data")
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Niepoprawna wiadomosc relay: {e}")
            return
        await self.broadcast(event, data)

    async def _send(self, ws: WebSocket, event: str, data: Any):
        try:
            await ws.send_json(jsonable_encoder({"event": event, "data": data}))
        except Exception as e:
            logger.info(f"Usuwam martwy socket: {e}")
            self.disconnect(ws)

    async def _push_dashboard(self):
        if not self._dashboard:
            return
        data = await asyncio.to_thread(self.dashboard_snapshot)
        await self.broadcast("dashboard_update", data, self._dashboard)

    async def _push_products(self):
        for product_id, sockets in list(self._products.items()):
            if not sockets:
                continue
            data = await asyncio.to_thread(self.product_snapshot, product_id)
            if data is not None:
                await self.broadcast("product_analytics", data, sockets)

    async def _every(self, interval: float, job):
        while True:
            await asyncio.sleep(interval)
            try:
                await job()
            except Exception:
                # blad jednego cyklu nie zatrzymuje petli
                logger.exception(f"LiveHub: {job.__name__} nieudany")

    async def _listen_relay(self):
        while True:
            client = aioredis.Redis.from_url(self.relay_url, decode_responses=True)
            pubsub = client.pubsub()
            try:
                await pubsub.subscribe(self.relay_channel)
                logger.info(f"LiveHub subskrybuje relay {self.relay_channel}")
                async for message in pubsub.listen():
                    if message.get("type") == "message":
                        await self.dispatch_relayed(message["data"])
            except redis.RedisError as e:
                logger.warning(f"Relay LiveHub rozlaczony: {e}, ponowienie za {LIVE_RELAY_RECONNECT_SECONDS}s")
            finally:
                await pubsub.aclose()
                await client.aclose()
            await asyncio.sleep(LIVE_RELAY_RECONNECT_SECONDS)


# jeden hub na proces, start/stop w lifespan aplikacji
live_hub = LiveHub(relay_url=REDIS_URL)
