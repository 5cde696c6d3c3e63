"""
Rover Relay - MQTT to WebSocket relay for the rover dashboard.

This module runs next to the MQTT broker and:
- Subscribes to sensor topics published by the rover's ESP32 nodes
- Normalizes them into canonical sensor events for dashboards
- Relays operator commands back onto the bus and to rover clients
"""

__version__ = "1.0.0"
