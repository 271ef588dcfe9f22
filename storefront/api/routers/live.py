# storefront/api/routers/live.py
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from storefront.api.deps import get_live_hub
from storefront.services.live_hub import LiveHub
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["live"])


@router.websocket("/ws/analytics")
async def analytics_socket(ws: WebSocket, hub: LiveHub = Depends(get_live_hub)):
    """
    Klient wysyla {"event": "subscribe_dashboard"} albo
    {"event": "subscribe_product", "product_id": N}, dalej dostaje pushe.
    """
    await hub.connect(ws)
    try:
        while True:
            try:
                message = await ws.receive_json()
            except ValueError:
                await hub.broadcast("error", {"message": "Invalid JSON"}, [ws])
                continue
            await hub.handle(ws, message)
    except WebSocketDisconnect:
        logger.info("Analytics client disconnected")
    finally:
        hub.disconnect(ws)
