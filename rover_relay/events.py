"""
Canonical sensor events sent to dashboards.

Every event carries the WebSocket event name it is broadcast under
(``kind``) and serializes to the exact payload dashboards expect.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional

# Default for distance readings with no echo / out of range
NO_ECHO_CM = 999.0


@dataclass
class SensorEvent:
    """Base class for canonical sensor events."""
    kind = ""

    def to_dict(self) -> Dict[str, Any]:
        """Payload as sent to dashboards."""
        return asdict(self)


@dataclass
class RadarEvent(SensorEvent):
    """
    Ultrasonic distances around the rover.

    Attributes:
        front, right, back, left: Distance in cm, NO_ECHO_CM when absent
    """
    kind = "radar-data"
    front: float = NO_ECHO_CM
    right: float = NO_ECHO_CM
    back: float = NO_ECHO_CM
    left: float = NO_ECHO_CM


@dataclass
class ImuEvent(SensorEvent):
    """Orientation in degrees."""
    kind = "imu-data"
    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0


@dataclass
class EnvironmentEvent(SensorEvent):
    """Temperature (°C), relative humidity (%) and illuminance (lux)."""
    kind = "env-data"
    temperature: float = 0.0
    humidity: float = 0.0
    lux: float = 0.0


@dataclass
class PowerEvent(SensorEvent):
    """Single power sensor reading; ``power`` is derived as voltage*current."""
    kind = "power-data"
    voltage: float = 0.0
    current: float = 0.0
    power: float = 0.0


@dataclass
class SolarPowerEvent(SensorEvent):
    """
    Solar and load rails reported by the all-in-one sensor node.

    Voltages are in V, currents in mA; the wattages are derived.
    """
    kind = "power-data"
    solarV: float = 0.0
    loadV: float = 0.0
    solarI: float = 0.0
    loadI: float = 0.0
    solarW: float = 0.0
    loadW: float = 0.0


@dataclass
class GpsEvent(SensorEvent):
    """
    GPS fix from the GPS-GSM node.

    Attributes:
        lat, lon: Position in decimal degrees
        speed: Ground speed in km/h
        heading: Course over ground, degrees 0-360
        satellites: Satellites in view
        signal: GSM signal quality
        active: Fix flag as reported by the node (None if not reported)
        sos: SOS flag as reported by the node (None if not reported)
    """
    kind = "gps-data"
    lat: float = 0.0
    lon: float = 0.0
    speed: float = 0.0
    heading: float = 0.0
    satellites: int = 0
    signal: int = 0
    active: Optional[Any] = None
    sos: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        # Flags the node did not send are left out entirely
        for key in ("active", "sos"):
            if payload[key] is None:
                payload.pop(key)
        return payload


@dataclass
class ActuatorStatusEvent(SensorEvent):
    """Actuator node status, relayed verbatim."""
    kind = "actuator-status"
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return self.payload
