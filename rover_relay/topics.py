"""MQTT topic names used by the relay."""

# Sensor ESP32, all-in-one payload and its per-node variants
NODE1_DATA = "rover/node1/data"
NODE_DATA_WILDCARD = "rover/+/data"

# Sensor ESP32, single-purpose topics
ULTRASONIC = "rover/ultrasonic"
IMU = "rover/imu"
ENV = "rover/env"
POWER = "rover/power"

ACTUATOR_STATUS = "rover/actuator/status"

# Legacy alias of the all-in-one topic
SENSOR_LEGACY = "rover/sensor"

GPS = "rover/gps"
GPS_WILDCARD = "rover/+/gps"
NODE2_GPS = "rover/node2/gps"

# Actuator ESP32 command topics
DRIVE = "rover/node2/drive"
PANTILT = "rover/node2/pantilt"
DEVICE = "rover/node2/device"

SENSOR_TOPICS = (
    NODE1_DATA,
    NODE_DATA_WILDCARD,
    ULTRASONIC,
    IMU,
    ENV,
    POWER,
    ACTUATOR_STATUS,
    SENSOR_LEGACY,
)

GPS_TOPICS = (GPS, GPS_WILDCARD)


def main_bus_topics(has_gps_bus: bool) -> list:
    """Topics for the main broker; GPS stays here only without a GPS broker."""
    topics = list(SENSOR_TOPICS)
    if not has_gps_bus:
        topics.extend(GPS_TOPICS)
    return topics


def gps_bus_topics() -> list:
    """Topics for the dedicated GPS broker."""
    return list(GPS_TOPICS)
