"""
Topic router: MQTT topic + normalized payload -> canonical sensor events.

Handles:
- Single-purpose sensor topics (ultrasonic, imu, env, power)
- GPS topics from the GPS-GSM node
- Actuator status pass-through
- All-in-one sensor node payloads, decomposed into per-category events

Topics are matched literally; wildcards are resolved by the broker
subscription, the router sees the concrete topic name.
"""

import logging
import math
from typing import Any, Callable, Dict, List, Mapping, Optional

from . import topics
from .events import (
    NO_ECHO_CM,
    ActuatorStatusEvent,
    EnvironmentEvent,
    GpsEvent,
    ImuEvent,
    PowerEvent,
    RadarEvent,
    SensorEvent,
    SolarPowerEvent,
)
from .normalizer import parse_float, parse_int

logger = logging.getLogger(__name__)

EventSink = Callable[[str, Dict[str, Any]], None]


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    """Value of the first key present with a non-null value."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _derived(value: float) -> float:
    """Round a derived reading to 2 decimals; overflowed products become 0."""
    return round(value, 2) if math.isfinite(value) else 0.0


def _sub(data: Mapping[str, Any], key: str) -> Optional[Mapping[str, Any]]:
    """Nested object of an all-in-one payload, None if absent or not an object."""
    value = data.get(key)
    if isinstance(value, Mapping):
        return value
    if value:
        logger.debug(f"Ignoring non-object '{key}' section: {value!r}")
    return None


def build_radar(data: Mapping[str, Any]) -> RadarEvent:
    return RadarEvent(
        front=parse_float(data.get("front"), NO_ECHO_CM),
        right=parse_float(data.get("right"), NO_ECHO_CM),
        back=parse_float(data.get("back"), NO_ECHO_CM),
        left=parse_float(data.get("left"), NO_ECHO_CM),
    )


def build_imu(data: Mapping[str, Any]) -> ImuEvent:
    return ImuEvent(
        roll=parse_float(data.get("roll"), 0.0),
        pitch=parse_float(data.get("pitch"), 0.0),
        yaw=parse_float(data.get("yaw"), 0.0),
    )


def build_environment(data: Mapping[str, Any]) -> EnvironmentEvent:
    return EnvironmentEvent(
        temperature=parse_float(_first(data, "temperature", "temp"), 0.0),
        humidity=parse_float(_first(data, "humidity", "hum"), 0.0),
        lux=parse_float(data.get("lux"), 0.0),
    )


def build_power(data: Mapping[str, Any]) -> PowerEvent:
    voltage = parse_float(_first(data, "voltage", "v"), 0.0)
    current = parse_float(_first(data, "current", "i"), 0.0)
    return PowerEvent(
        voltage=voltage,
        current=current,
        power=_derived(voltage * current),
    )


def build_solar_power(data: Mapping[str, Any]) -> SolarPowerEvent:
    """Solar/load rails; currents arrive in mA, so wattage divides by 1000."""
    solar_v = parse_float(data.get("solarV"), 0.0)
    load_v = parse_float(data.get("loadV"), 0.0)
    solar_i = parse_float(data.get("solarI"), 0.0)
    load_i = parse_float(data.get("loadI"), 0.0)
    return SolarPowerEvent(
        solarV=solar_v,
        loadV=load_v,
        solarI=solar_i,
        loadI=load_i,
        solarW=_derived(solar_v * solar_i / 1000),
        loadW=_derived(load_v * load_i / 1000),
    )


def build_gps(data: Mapping[str, Any]) -> GpsEvent:
    return GpsEvent(
        lat=parse_float(data.get("lat"), 0.0),
        lon=parse_float(_first(data, "lon", "long"), 0.0),
        speed=parse_float(data.get("speed"), 0.0),
        heading=parse_float(_first(data, "direction", "heading"), 0.0),
        satellites=parse_int(data.get("satellites"), 0),
        signal=parse_int(data.get("signal"), 0),
        active=data.get("active"),
        sos=data.get("sos"),
    )


def decompose_node_data(data: Mapping[str, Any]) -> List[SensorEvent]:
    """
    Split an all-in-one sensor node payload into canonical events.

    Format: ``{node, radar:{front,right,back,left}, temp, hum, lux,
    imu:{roll,pitch,yaw}, power:{solarV,loadV,solarI,loadI}}``; each
    section is optional.
    """
    events: List[SensorEvent] = []

    radar = _sub(data, "radar")
    if radar is not None:
        events.append(build_radar(radar))

    imu = _sub(data, "imu")
    if imu is not None:
        events.append(build_imu(imu))

    if "temp" in data:
        events.append(EnvironmentEvent(
            temperature=parse_float(data.get("temp"), 0.0),
            humidity=parse_float(data.get("hum"), 0.0),
            lux=parse_float(data.get("lux"), 0.0),
        ))

    power = _sub(data, "power")
    if power is not None:
        events.append(build_solar_power(power))

    return events


class MessageRouter:
    """
    Maps inbound topics to canonical events and emits them immediately.

    Shared by every broker connector so output does not depend on which
    broker delivered a message.
    """

    def __init__(self, sink: Optional[EventSink] = None):
        """
        Initialize router.

        Args:
            sink: Called as ``sink(event_name, payload)`` for every emission,
                normally ``Broadcaster.broadcast_to_dashboards``
        """
        self.sink = sink
        self._handlers: Dict[str, Callable[[Mapping[str, Any]], List[SensorEvent]]] = {
            topics.ULTRASONIC: lambda d: [build_radar(d)],
            topics.IMU: lambda d: [build_imu(d)],
            topics.ENV: lambda d: [build_environment(d)],
            topics.POWER: lambda d: [build_power(d)],
            topics.GPS: lambda d: [build_gps(d)],
            topics.NODE2_GPS: lambda d: [build_gps(d)],
            topics.ACTUATOR_STATUS: lambda d: [ActuatorStatusEvent(payload=dict(d))],
            topics.NODE1_DATA: decompose_node_data,
            "rover/node2/data": decompose_node_data,
            "rover/node3/data": decompose_node_data,
            topics.SENSOR_LEGACY: decompose_node_data,
        }

        # Statistics
        self._routed = 0
        self._unhandled = 0

    def route(self, topic: str, data: Mapping[str, Any]) -> List[SensorEvent]:
        """
        Route one message and emit its events.

        Args:
            topic: Concrete topic the message arrived on
            data: Normalized payload

        Returns:
            Events emitted, in emission order (empty for unhandled topics)
        """
        handler = self._handlers.get(topic)
        if handler is None:
            self._unhandled += 1
            logger.info(f"Unhandled topic: {topic}")
            return []

        events = handler(data)
        self._routed += 1
        for event in events:
            if self.sink:
                self.sink(event.kind, event.to_dict())
        return events

    def get_stats(self) -> dict:
        """Get router statistics."""
        return {
            "routed": self._routed,
            "unhandled": self._unhandled,
        }
