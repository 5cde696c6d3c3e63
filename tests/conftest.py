"""Shared fakes for the relay tests."""

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import pytest

from rover_relay.config import BrokerEndpoint
from rover_relay.dispatch import Broadcaster, CommandDispatcher
from rover_relay.registry import ClientRegistry
from rover_relay.router import MessageRouter


class FakeClient:
    """Socket client double recording what it is sent."""

    def __init__(self, name: str):
        self.name = name
        self.sent: List[Tuple[str, Any]] = []
        self.closing = False

    def send(self, event: str, data: Any = None) -> bool:
        self.sent.append((event, data))
        return True

    def events(self) -> List[str]:
        return [event for event, _ in self.sent]

    def __repr__(self) -> str:
        return f"FakeClient({self.name})"


class FakePublisher:
    """Records MQTT publishes."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.published: List[Tuple[str, Any]] = []

    def publish(self, topic: str, payload: Any) -> bool:
        if not self.connected:
            return False
        self.published.append((topic, payload))
        return True


@dataclass
class FakeReasonCode:
    value: int = 0

    @property
    def is_failure(self) -> bool:
        return self.value >= 0x80

    def __str__(self) -> str:
        return "Success" if self.value == 0 else f"Failure({self.value})"


@dataclass
class FakePublishInfo:
    rc: int = 0


@dataclass
class FakeMessage:
    topic: str
    payload: bytes


class FakeMQTTClient:
    """
    Stand-in for ``paho.mqtt.client.Client``.

    ``loop_start`` reports a successful connection unless
    ``auto_connect`` is False.
    """

    def __init__(self, client_id: str, transport: str, auto_connect: bool = True):
        self.client_id = client_id
        self.transport = transport
        self.auto_connect = auto_connect
        self.on_connect = None
        self.on_disconnect = None
        self.on_message = None
        self.subscriptions: List[List[Tuple[str, int]]] = []
        self.published: List[Tuple[str, str, int]] = []
        self.connect_args: Optional[Tuple[str, int]] = None
        self.reconnect_delay: Optional[Tuple[float, float]] = None
        self.credentials: Optional[Tuple[str, Optional[str]]] = None
        self.tls = False
        self.ws_path: Optional[str] = None
        self.loop_started = False
        self.disconnected = False

    def reconnect_delay_set(self, min_delay, max_delay):
        self.reconnect_delay = (min_delay, max_delay)

    def username_pw_set(self, username, password=None):
        self.credentials = (username, password)

    def tls_set(self):
        self.tls = True

    def ws_set_options(self, path="/mqtt"):
        self.ws_path = path

    def connect_async(self, host, port, keepalive=60):
        self.connect_args = (host, port)

    def loop_start(self):
        self.loop_started = True
        if self.auto_connect:
            self.simulate_connect()

    def loop_stop(self):
        self.loop_started = False

    def disconnect(self):
        self.disconnected = True

    def subscribe(self, topics):
        self.subscriptions.append(list(topics))
        return 0, len(self.subscriptions)

    def publish(self, topic, payload, qos=0):
        self.published.append((topic, payload, qos))
        return FakePublishInfo(rc=0)

    # Broker-side events

    def simulate_connect(self, code: int = 0):
        self.on_connect(self, None, {}, FakeReasonCode(code), None)

    def simulate_disconnect(self, code: int = 0):
        self.on_disconnect(self, None, {}, FakeReasonCode(code), None)

    def simulate_message(self, topic: str, payload):
        if isinstance(payload, str):
            payload = payload.encode()
        self.on_message(self, None, FakeMessage(topic, payload))


class FakeClientFactory:
    """Client factory keeping every fake client it builds."""

    def __init__(self, auto_connect: bool = True):
        self.auto_connect = auto_connect
        self.clients: List[FakeMQTTClient] = []

    def __call__(self, client_id: str, transport: str) -> FakeMQTTClient:
        client = FakeMQTTClient(client_id, transport, auto_connect=self.auto_connect)
        self.clients.append(client)
        return client


class FakeWebSocket:
    """Server-side WebSocket double fed with a fixed list of text or bytes frames."""

    def __init__(self, frames: List[Any]):
        self.frames = list(frames)
        self.sent: List[str] = []
        self.accepted = False
        self.client = ("127.0.0.1", 50000)

    async def accept(self):
        self.accepted = True

    async def receive(self) -> dict:
        if not self.frames:
            return {"type": "websocket.disconnect", "code": 1000}
        frame = self.frames.pop(0)
        if isinstance(frame, bytes):
            return {"type": "websocket.receive", "bytes": frame}
        return {"type": "websocket.receive", "text": frame}

    async def send_text(self, text: str):
        self.sent.append(text)


@pytest.fixture
def registry():
    return ClientRegistry()


@pytest.fixture
def broadcaster(registry):
    return Broadcaster(registry)


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def dispatcher(registry, broadcaster, publisher):
    return CommandDispatcher(registry, broadcaster, publisher=publisher)


@pytest.fixture
def emitted():
    return []


@pytest.fixture
def router(emitted):
    return MessageRouter(sink=lambda kind, payload: emitted.append((kind, payload)))


@pytest.fixture
def endpoint():
    return BrokerEndpoint(host="broker.local", port=1883)
