"""
WebSocket server for dashboard and rover clients.

Handles:
- FastAPI WebSocket endpoint at /ws with ``{"event", "data"}`` JSON frames
- Client lifecycle (registry cleanup on disconnect)
- Camera signaling URL endpoint for the dashboard's media layer
- Health endpoint
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from .dispatch import CommandDispatcher
from .registry import Client, ClientRegistry

logger = logging.getLogger(__name__)


@dataclass
class SocketMessage:
    """Parsed socket frame."""
    event: str
    data: Any = None

    @classmethod
    def from_json(cls, raw: str) -> 'SocketMessage':
        """
        Parse from JSON string.

        Raises:
            ValueError: Not JSON, not an object, or no string ``event``
        """
        d = json.loads(raw)
        if not isinstance(d, dict):
            raise ValueError("frame is not a JSON object")
        event = d.get("event")
        if not isinstance(event, str) or not event:
            raise ValueError("frame has no event name")
        return cls(event=event, data=d.get("data"))


class WebSocketServer:
    """
    WebSocket server relaying between dashboards, rovers and the bus.

    Every frame received is handed to the command dispatcher; outbound
    frames go through each client's own send queue.
    """

    def __init__(
        self,
        dispatcher: CommandDispatcher,
        registry: ClientRegistry,
        webrtc_urls: Optional[Dict[str, str]] = None,
        stats_provider: Optional[Callable[[], dict]] = None,
    ):
        """
        Initialize WebSocket server.

        Args:
            dispatcher: Handles inbound client events
            registry: Client registry (cleaned up on disconnect)
            webrtc_urls: ``{"cam1": url, "cam2": url}`` for /config/webrtc-url
            stats_provider: Extra statistics merged into /health
        """
        self.dispatcher = dispatcher
        self.registry = registry
        self.webrtc_urls = webrtc_urls or {}
        self.stats_provider = stats_provider

        # Connected clients (for monitoring)
        self._connected_clients: Dict[str, Client] = {}

        # Statistics
        self._total_messages = 0
        self._invalid_messages = 0

        # FastAPI app
        self.app = FastAPI(title="Rover Relay")

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self._setup_routes()

    def _setup_routes(self):
        """Set up FastAPI routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            return {"status": "ok", **self.get_stats()}

        @self.app.get("/config/webrtc-url")
        async def webrtc_url():
            """Camera signaling URLs for the dashboard."""
            cam1 = self.webrtc_urls.get("cam1")
            return {
                "wsUrl": cam1,
                "cam1": cam1,
                "cam2": self.webrtc_urls.get("cam2", cam1),
            }

        @self.app.websocket("/ws")
        async def websocket_endpoint(websocket: WebSocket):
            """WebSocket endpoint for dashboards and rovers."""
            await self._handle_websocket(websocket)

    async def _handle_websocket(self, websocket: WebSocket) -> None:
        """Handle one WebSocket connection until it closes."""
        await websocket.accept()

        client = Client(websocket)
        client.start()
        self._connected_clients[client.client_id] = client
        logger.info(f"Client connected: {client.client_id} from {websocket.client}")

        try:
            await self._receive_messages(websocket, client)
        except WebSocketDisconnect:
            logger.info(f"Client disconnected: {client.client_id}")
        except Exception as e:
            logger.error(f"Error handling client {client.client_id}: {e}")
        finally:
            self._connected_clients.pop(client.client_id, None)
            self.registry.unregister(client)
            await client.close()

    async def _receive_messages(self, websocket: WebSocket, client: Client) -> None:
        """Receive frames from a client and dispatch them."""
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            self._total_messages += 1

            raw = message.get("text")
            if raw is None:
                self._invalid_messages += 1
                logger.warning(f"Invalid message from {client.client_id}: binary frame")
                continue

            try:
                msg = SocketMessage.from_json(raw)
            except ValueError as e:
                self._invalid_messages += 1
                logger.warning(f"Invalid message from {client.client_id}: {e}")
                continue

            try:
                self.dispatcher.handle(client, msg.event, msg.data)
            except Exception as e:
                logger.error(f"Error handling '{msg.event}' from {client.client_id}: {e}")

    def get_stats(self) -> dict:
        """Get server statistics."""
        stats = {
            "connected_clients": len(self._connected_clients),
            "total_messages": self._total_messages,
            "invalid_messages": self._invalid_messages,
            **self.registry.get_stats(),
        }
        if self.stats_provider:
            stats.update(self.stats_provider())
        return stats
