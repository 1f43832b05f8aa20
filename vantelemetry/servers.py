"""
Live update hub.

Browsers connect over WebSocket and subscribe to named channels:

    -> {"action": "subscribe", "channel": "tanks"}
    <- {"type": "subscribed", "channel": "tanks"}
    <- {"channel": "tanks", "event": "tank_level_updated", "data": {...}}

publish() may be called from any thread. Messages are handed to the hub's
event loop and broadcast without waiting, so a slow client never holds up
the caller.
"""
import asyncio
import json
import logging
import threading
from typing import Any, Dict, Optional, Set

import websockets

from .interfaces import Publisher

logger = logging.getLogger("TelemetryHub")

CHANNELS = ("tanks", "controls", "alerts", "electrical")


class TelemetryHub(Publisher):

    def __init__(self, host: str = "0.0.0.0", port: int = 8765):
        self._host = host
        self._port = port
        self._subscriptions: Dict[str, Set[Any]] = {channel: set() for channel in CHANNELS}
        self._clients: Dict[str, Any] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._started = threading.Event()

    def start(self) -> None:
        """Start the WebSocket hub in a background thread."""
        self._thread = threading.Thread(target=self._run_server, name="telemetry-hub", daemon=True)
        self._thread.start()
        self._started.wait(timeout=5)
        logger.info(f"Telemetry hub starting on ws://{self._host}:{self._port}")

    def _run_server(self) -> None:
        """Run the WebSocket server in its own event loop."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            loop.run_until_complete(self._serve())
        except Exception as e:
            logger.error(f"Telemetry hub error: {e}")
        finally:
            self._started.set()
            self._loop = None
            loop.close()

    async def _serve(self) -> None:
        self._stop_event = asyncio.Event()
        async with websockets.serve(self._handle_client, self._host, self._port):
            self._started.set()
            logger.info(f"Telemetry hub running on ws://{self._host}:{self._port}")
            await self._stop_event.wait()

    async def _handle_client(self, websocket) -> None:
        client_id = f"client-{id(websocket)}"
        self._clients[client_id] = websocket
        logger.info(f"Client connected: {client_id}")
        try:
            async for message in websocket:
                await self._handle_message(websocket, message)
        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            self._drop(websocket)
            self._clients.pop(client_id, None)
            logger.info(f"Client disconnected: {client_id}")

    async def _handle_message(self, websocket, message) -> None:
        try:
            request = json.loads(message)
            action = request.get("action")
            channel = request.get("channel")
        except (ValueError, AttributeError):
            await websocket.send(json.dumps({"type": "error", "error": "Invalid JSON message"}))
            return

        if channel not in self._subscriptions:
            await websocket.send(json.dumps({"type": "error", "error": f"Unknown channel: {channel}"}))
            return

        if action == "subscribe":
            self._subscriptions[channel].add(websocket)
            await websocket.send(json.dumps({"type": "subscribed", "channel": channel}))
        elif action == "unsubscribe":
            self._subscriptions[channel].discard(websocket)
            await websocket.send(json.dumps({"type": "unsubscribed", "channel": channel}))
        else:
            await websocket.send(json.dumps({"type": "error", "error": f"Unknown action: {action}"}))

    def _drop(self, websocket) -> None:
        for subscribers in self._subscriptions.values():
            subscribers.discard(websocket)

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscriptions.get(channel, ()))

    @property
    def connected_clients(self) -> int:
        return len(self._clients)

    def publish(self, channel: str, event: str, payload: Any) -> None:
        loop = self._loop
        if loop is None or not loop.is_running():
            return
        message = json.dumps({"channel": channel, "event": event, "data": payload}, default=str)
        try:
            loop.call_soon_threadsafe(self._broadcast, channel, message)
        except RuntimeError:
            # loop closed between the check and the call
            logger.debug(f"Dropped {event} on {channel}: hub stopped")

    def _broadcast(self, channel: str, message: str) -> None:
        subscribers = list(self._subscriptions.get(channel, ()))
        if subscribers:
            websockets.broadcast(subscribers, message)

    def stop(self) -> None:
        """Stop the hub."""
        loop = self._loop
        if loop is not None and self._stop_event is not None:
            loop.call_soon_threadsafe(self._stop_event.set)
        if self._thread:
            self._thread.join(timeout=5)
        logger.info("Telemetry hub stopped")
