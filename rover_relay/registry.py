"""
Connected WebSocket clients and their roles.

Handles:
- Per-client outbound queue drained by a single sender task
- Dashboard / rover membership sets (a client holds at most one role)
"""

import asyncio
import itertools
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

_client_ids = itertools.count(1)


class Role(str, Enum):
    """Role a client registers as."""
    DASHBOARD = "dashboard"
    ROVER = "rover"


@dataclass
class ClientStats:
    """Statistics about one client connection."""
    connected_at: float
    frames_sent: int = 0
    frames_dropped: int = 0
    last_send_time: Optional[float] = None


class Client:
    """
    One connected WebSocket client.

    ``send`` never blocks: frames are queued and written by a background
    task, so a slow client cannot stall broadcasts to the others.
    """

    def __init__(self, websocket: Any, client_id: Optional[str] = None, queue_size: int = 100):
        """
        Initialize client.

        Args:
            websocket: Object with an async ``send_text(str)`` method
            client_id: Identifier for logs (generated if omitted)
            queue_size: Maximum frames waiting to be sent
        """
        self.websocket = websocket
        self.client_id = client_id or f"client_{next(_client_ids)}"
        self.stats = ClientStats(connected_at=time.time())

        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._sender: Optional[asyncio.Task] = None
        self._closing = False

    @property
    def closing(self) -> bool:
        """True once the connection failed or is being torn down."""
        return self._closing

    def start(self) -> None:
        """Start the sender task; must run inside the event loop."""
        if self._sender is None:
            self._sender = asyncio.create_task(self._send_loop())

    async def close(self) -> None:
        """Stop sending and cancel the sender task."""
        self._closing = True
        if self._sender:
            self._sender.cancel()
            try:
                await self._sender
            except asyncio.CancelledError:
                pass
            self._sender = None

    def send(self, event: str, data: Any = None) -> bool:
        """
        Queue an event frame for this client.

        Returns:
            True if queued, False if the client is closing or its queue is full
        """
        if self._closing:
            return False
        try:
            frame = json.dumps({"event": event, "data": data}, allow_nan=False)
        except (TypeError, ValueError) as e:
            self.stats.frames_dropped += 1
            logger.warning(f"Dropping '{event}' for {self.client_id}, not valid JSON: {e}")
            return False
        try:
            self._queue.put_nowait(frame)
            return True
        except asyncio.QueueFull:
            self.stats.frames_dropped += 1
            logger.warning(f"Send queue full for {self.client_id}, dropping '{event}'")
            return False

    async def flush(self) -> None:
        """Wait until every queued frame has been written or dropped."""
        await self._queue.join()

    async def _send_loop(self) -> None:
        """Write queued frames in order."""
        while True:
            frame = await self._queue.get()
            try:
                if not self._closing:
                    await self.websocket.send_text(frame)
                    self.stats.frames_sent += 1
                    self.stats.last_send_time = time.time()
                else:
                    self.stats.frames_dropped += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._closing = True
                self.stats.frames_dropped += 1
                logger.debug(f"Send to {self.client_id} failed, skipping from now on: {e}")
            finally:
                self._queue.task_done()

    def __repr__(self) -> str:
        return f"Client({self.client_id})"


class ClientRegistry:
    """
    Dashboard and rover membership sets.

    Registering moves a client: it is removed from the other role first,
    so a client is never in both sets. All methods are synchronous and
    run on the event loop, so iteration snapshots never interleave with
    membership changes.
    """

    def __init__(self):
        self._members: Dict[Role, Set[Any]] = {
            Role.DASHBOARD: set(),
            Role.ROVER: set(),
        }

    def register(self, client: Any, role: Role) -> Role:
        """
        Register a client under a role (idempotent, move semantics).

        Returns:
            The assigned role
        """
        for other, members in self._members.items():
            if other is not role and client in members:
                members.discard(client)
                logger.info(f"{client!r} moved from {other.value} to {role.value}")
        self._members[role].add(client)
        return role

    def register_dashboard(self, client: Any) -> Role:
        return self.register(client, Role.DASHBOARD)

    def register_rover(self, client: Any) -> Role:
        return self.register(client, Role.ROVER)

    def unregister(self, client: Any) -> None:
        """Remove a client from every role; no-op if never registered."""
        for members in self._members.values():
            members.discard(client)

    def role_of(self, client: Any) -> Optional[Role]:
        """Current role of a client, None if unregistered."""
        for role, members in self._members.items():
            if client in members:
                return role
        return None

    def members(self, role: Role) -> List[Any]:
        """Snapshot of the clients registered under ``role``."""
        return list(self._members[role])

    def dashboards(self) -> List[Any]:
        return self.members(Role.DASHBOARD)

    def rovers(self) -> List[Any]:
        return self.members(Role.ROVER)

    def get_stats(self) -> dict:
        """Get registry statistics."""
        return {
            "dashboards": len(self._members[Role.DASHBOARD]),
            "rovers": len(self._members[Role.ROVER]),
        }
