"""
MQTT broker connectors.

Handles:
- Connection to one broker with fixed-interval automatic reconnection
- Re-subscribing the full topic set on every (re)connect
- Normalizing inbound payloads and handing them to the topic router
- Publishing command payloads as JSON
"""

import asyncio
import json
import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Iterable, Optional

import paho.mqtt.client as mqtt

from .config import BrokerEndpoint
from .normalizer import decode_payload, normalize
from .router import MessageRouter

logger = logging.getLogger(__name__)


class ConnectorState(str, Enum):
    """Connection state of a broker connector."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class MQTTConnector:
    """
    One MQTT broker connection feeding the shared topic router.

    The paho network loop runs in a background thread. Inbound messages
    are normalized there and routed on the asyncio loop (when one is
    attached) in arrival order.
    """

    def __init__(
        self,
        name: str,
        endpoint: BrokerEndpoint,
        topics: Iterable[str],
        router: MessageRouter,
        reconnect_period: float = 3.0,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        client_factory: Optional[Callable[[str, str], Any]] = None,
    ):
        """
        Initialize connector.

        Args:
            name: Label used in logs and stats ("main", "gps")
            endpoint: Broker to connect to
            topics: Topic filters subscribed on every connect
            router: Shared topic router
            reconnect_period: Fixed delay between reconnect attempts (s)
            loop: Event loop to route messages on; inline routing if None
            client_factory: Builds the paho client from (client_id, transport)
        """
        self.name = name
        self.endpoint = endpoint
        self.topics = list(topics)
        self.router = router
        self.reconnect_period = reconnect_period
        self.loop = loop
        self._client_factory = client_factory or self._create_client

        self._client: Optional[Any] = None
        self._connected = threading.Event()
        self._running = False
        self.state = ConnectorState.DISCONNECTED

        # Statistics
        self._messages_received = 0
        self._messages_published = 0
        self._publish_failures = 0
        self._last_message_time: Optional[float] = None

    @staticmethod
    def _create_client(client_id: str, transport: str) -> mqtt.Client:
        return mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            clean_session=True,
            transport=transport,
        )

    def start(self, wait_timeout: float = 5.0) -> bool:
        """
        Start connecting in the background.

        A broker that is down is not an error: the network thread keeps
        retrying every ``reconnect_period`` seconds.

        Args:
            wait_timeout: How long to wait for the first connection

        Returns:
            True if connected within ``wait_timeout``
        """
        if self._running:
            return self.connected

        client_id = f"rover-relay-{self.name}-{int(time.time() * 1000)}"
        client = self._client_factory(client_id, self.endpoint.transport)

        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message

        if self.endpoint.transport == "websockets":
            client.ws_set_options(path=self.endpoint.ws_path)
        if self.endpoint.username:
            client.username_pw_set(self.endpoint.username, self.endpoint.password)
        if self.endpoint.tls:
            client.tls_set()

        client.reconnect_delay_set(
            min_delay=self.reconnect_period,
            max_delay=self.reconnect_period,
        )

        logger.info(f"[{self.name}] Connecting to MQTT broker at {self.endpoint}")
        self._client = client
        self._running = True
        self.state = ConnectorState.CONNECTING
        try:
            client.connect_async(self.endpoint.host, self.endpoint.port, keepalive=60)
            client.loop_start()
        except Exception as e:
            logger.error(f"[{self.name}] Failed to start MQTT client: {e}")
            self._running = False
            self._client = None
            self.state = ConnectorState.DISCONNECTED
            return False

        if not self._connected.wait(wait_timeout):
            logger.warning(
                f"[{self.name}] MQTT connection timeout - retrying every "
                f"{self.reconnect_period:g}s in the background"
            )
            return False
        return True

    def stop(self) -> None:
        """Disconnect and stop the network thread."""
        if not self._running:
            return

        self._running = False
        if self._client:
            self._client.disconnect()
            self._client.loop_stop()
            self._client = None

        self._connected.clear()
        self.state = ConnectorState.DISCONNECTED
        logger.info(f"[{self.name}] MQTT client disconnected")

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        """MQTT connection callback."""
        if reason_code.is_failure:
            self.state = ConnectorState.RECONNECTING
            logger.error(f"[{self.name}] MQTT connection refused: {reason_code}")
            return

        self._connected.set()
        self.state = ConnectorState.CONNECTED
        logger.info(f"[{self.name}] Connected to MQTT broker")

        # Subscriptions do not survive a reconnect with a clean session
        result, _ = client.subscribe([(topic, 0) for topic in self.topics])
        if result != mqtt.MQTT_ERR_SUCCESS:
            logger.error(f"[{self.name}] MQTT subscribe error: {mqtt.error_string(result)}")
        else:
            logger.info(f"[{self.name}] Subscribed to {', '.join(self.topics)}")

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        """MQTT disconnection callback."""
        self._connected.clear()
        if self._running:
            self.state = ConnectorState.RECONNECTING
            logger.warning(f"[{self.name}] MQTT connection lost ({reason_code}), reconnecting...")
        else:
            self.state = ConnectorState.DISCONNECTED
            logger.info(f"[{self.name}] Disconnected from MQTT broker")

    def _on_message(self, client, userdata, msg):
        """MQTT message callback."""
        self._messages_received += 1
        self._last_message_time = time.time()

        data = normalize(msg.payload)
        logger.debug(f"[MQTT-{self.name}] {msg.topic}: {decode_payload(msg.payload)}")

        if self.loop is None:
            self._route(msg.topic, data)
            return
        try:
            self.loop.call_soon_threadsafe(self._route, msg.topic, data)
        except RuntimeError:
            logger.debug(f"[{self.name}] Event loop closed, dropping {msg.topic}")

    def _route(self, topic: str, data: dict) -> None:
        try:
            self.router.route(topic, data)
        except Exception:
            logger.exception(f"[{self.name}] Error routing {topic}")

    def publish(self, topic: str, payload: Any) -> bool:
        """
        Publish a payload as JSON (QoS 0, fire and forget).

        Returns:
            True if handed to the client, False if disconnected or failed
        """
        if not self.connected:
            self._publish_failures += 1
            logger.warning(f"[{self.name}] Cannot publish to {topic} - not connected")
            return False

        try:
            info = self._client.publish(topic, json.dumps(payload), qos=0)
        except Exception as e:
            self._publish_failures += 1
            logger.error(f"[{self.name}] Failed to publish to {topic}: {e}")
            return False

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._publish_failures += 1
            logger.error(f"[{self.name}] Failed to publish to {topic}: {mqtt.error_string(info.rc)}")
            return False

        self._messages_published += 1
        logger.debug(f"[{self.name}] Published {topic}: {payload}")
        return True

    @property
    def connected(self) -> bool:
        """Check if connected to the broker."""
        return self._client is not None and self._connected.is_set()

    def get_stats(self) -> dict:
        """Get connector statistics."""
        return {
            "state": self.state.value,
            "broker": str(self.endpoint),
            "topics": list(self.topics),
            "messages_received": self._messages_received,
            "messages_published": self._messages_published,
            "publish_failures": self._publish_failures,
            "last_message_time": self._last_message_time,
        }
