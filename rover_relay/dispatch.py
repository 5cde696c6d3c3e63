"""
Broadcast and dispatch of socket events.

Handles:
- Fan-out of sensor events to every dashboard
- Registration of dashboard / rover clients
- Drive, pan-tilt and device commands republished to MQTT
- Waypoint operations and WebRTC signaling relayed between roles
"""

import logging
from typing import Any, Callable, Dict, Iterable, Optional

from . import topics
from .registry import ClientRegistry, Role

logger = logging.getLogger(__name__)

DEFAULT_DRIVE_SPEED = 200

# Events relayed verbatim: event -> (required sender role, target role)
RELAYED_EVENTS = {
    # Rover media / telemetry over the socket
    "gps-data": (Role.ROVER, Role.DASHBOARD),
    "radar-data": (Role.ROVER, Role.DASHBOARD),
    "camera-frame": (Role.ROVER, Role.DASHBOARD),
    "yolo-detections": (Role.ROVER, Role.DASHBOARD),
    # Waypoint operations
    "add-waypoint": (Role.DASHBOARD, Role.ROVER),
    "remove-waypoint": (Role.DASHBOARD, Role.ROVER),
    "clear-waypoints": (Role.DASHBOARD, Role.ROVER),
    "start-navigation": (Role.DASHBOARD, Role.ROVER),
    # WebRTC signaling
    "webrtc-offer": (Role.ROVER, Role.DASHBOARD),
    "webrtc-answer": (Role.DASHBOARD, Role.ROVER),
}

ICE_CANDIDATE = "webrtc-ice-candidate"


class Broadcaster:
    """
    Fire-and-forget fan-out to the clients of one role.

    Shared by the topic router (bus -> dashboards) and the command
    dispatcher (client -> opposite role).
    """

    def __init__(self, registry: ClientRegistry):
        self.registry = registry
        self._broadcasts = 0

    def broadcast(self, role: Role, event: str, data: Any = None) -> int:
        """
        Send an event to every client of ``role``.

        Closing clients are skipped.

        Returns:
            Number of clients the event was queued for
        """
        self._broadcasts += 1
        return self._send_all(self.registry.members(role), event, data)

    def broadcast_to_dashboards(self, event: str, data: Any = None) -> int:
        return self.broadcast(Role.DASHBOARD, event, data)

    def broadcast_to_rovers(self, event: str, data: Any = None) -> int:
        return self.broadcast(Role.ROVER, event, data)

    @staticmethod
    def _send_all(clients: Iterable[Any], event: str, data: Any) -> int:
        delivered = 0
        for client in clients:
            if getattr(client, "closing", False):
                continue
            if client.send(event, data) is not False:
                delivered += 1
        return delivered

    def get_stats(self) -> dict:
        return {"broadcasts": self._broadcasts}


class CommandDispatcher:
    """
    Handles every event received from a socket client.

    Commands go to MQTT through ``publisher`` (any object with
    ``publish(topic, payload) -> bool``); the rover picks them up from
    the bus, never from the socket layer.
    """

    def __init__(
        self,
        registry: ClientRegistry,
        broadcaster: Broadcaster,
        publisher: Optional[Any] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            registry: Client registry
            broadcaster: Fan-out helper shared with the router
            publisher: Main bus connector used for command topics
        """
        self.registry = registry
        self.broadcaster = broadcaster
        self.publisher = publisher

        self._handlers: Dict[str, Callable[[Any, Any], None]] = {
            "register-dashboard": self._on_register_dashboard,
            "register-rover": self._on_register_rover,
            "drive-command": self._on_drive_command,
            "pantilt-command": self._on_pantilt_command,
            "device-command": self._on_device_command,
            ICE_CANDIDATE: self._on_ice_candidate,
        }

        # Statistics
        self._received = 0
        self._rejected = 0

    def handle(self, client: Any, event: str, data: Any = None) -> None:
        """
        Dispatch one inbound socket event.

        Args:
            client: Sending client
            event: Event name
            data: Event payload (any JSON value)
        """
        self._received += 1
        if event in RELAYED_EVENTS:
            origin, target = RELAYED_EVENTS[event]
            if self._check_origin(client, event, origin):
                self.broadcaster.broadcast(target, event, data)
            return

        handler = self._handlers.get(event)
        if handler is None:
            self._rejected += 1
            logger.warning(f"Unknown event '{event}' from {client!r}")
            return

        handler(client, data)

    def _check_origin(self, client: Any, event: str, origin: Role) -> bool:
        role = self.registry.role_of(client)
        if role is origin:
            return True
        self._rejected += 1
        logger.warning(
            f"Dropping '{event}' from {client!r}: expected {origin.value}, "
            f"sender is {role.value if role else 'unregistered'}"
        )
        return False

    def _on_register_dashboard(self, client: Any, data: Any) -> None:
        role = self.registry.register_dashboard(client)
        logger.info(f"Dashboard registered: {client!r}")
        client.send("registered", {"role": role.value})

    def _on_register_rover(self, client: Any, data: Any) -> None:
        role = self.registry.register_rover(client)
        logger.info(f"Rover registered: {client!r}")
        client.send("registered", {"role": role.value})

    def _publish(self, topic: str, payload: dict) -> bool:
        if self.publisher is None:
            logger.warning(f"No MQTT publisher, dropping command for {topic}")
            return False
        return self.publisher.publish(topic, payload)

    def _on_drive_command(self, client: Any, data: Any) -> None:
        if not self._check_origin(client, "drive-command", Role.DASHBOARD):
            return
        direction = data.get("direction") if isinstance(data, dict) else None
        if not isinstance(direction, str):
            logger.warning(f"drive-command without direction from {client!r}: {data!r}")
            return
        move = direction.upper()
        speed = data.get("speed")
        if speed is None:
            speed = DEFAULT_DRIVE_SPEED
        logger.info(f"[DRIVE] {move} @ {speed}")
        self._publish(topics.DRIVE, {"move": move, "speed": speed})

    def _on_pantilt_command(self, client: Any, data: Any) -> None:
        if not self._check_origin(client, "pantilt-command", Role.DASHBOARD):
            return
        data = data if isinstance(data, dict) else {}
        payload = {key: data[key] for key in ("pan", "tilt") if key in data}
        logger.info(f"[PANTILT] {payload}")
        self._publish(topics.PANTILT, payload)

    def _on_device_command(self, client: Any, data: Any) -> None:
        if not self._check_origin(client, "device-command", Role.DASHBOARD):
            return
        data = data if isinstance(data, dict) else {}
        payload = {"device": data.get("device"), "state": data.get("state")}
        logger.info(f"[DEVICE] {payload['device']} -> {payload['state']}")
        self._publish(topics.DEVICE, payload)

    def _on_ice_candidate(self, client: Any, data: Any) -> None:
        """Forward to the role opposite the sender's; unregistered senders are ignored."""
        role = self.registry.role_of(client)
        if role is Role.ROVER:
            logger.debug("ICE candidate from rover -> dashboards")
            self.broadcaster.broadcast_to_dashboards(ICE_CANDIDATE, data)
        elif role is Role.DASHBOARD:
            logger.debug("ICE candidate from dashboard -> rovers")
            self.broadcaster.broadcast_to_rovers(ICE_CANDIDATE, data)

    def get_stats(self) -> dict:
        """Get dispatcher statistics."""
        return {
            "received": self._received,
            "rejected": self._rejected,
        }
