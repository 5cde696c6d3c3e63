#!/usr/bin/env python3
"""
Rover Simulator - test the dashboard without hardware.

Connects to the relay as a rover client and:
- Sends gps-data at 2 Hz (rover driving in a circle)
- Sends radar-data at 5 Hz (random obstacles)
- Occasionally sends yolo-detections
- Logs waypoint / navigation events coming from dashboards

Usage:
    python -m rover_relay.simulator --server ws://127.0.0.1:3000/ws
"""

import argparse
import asyncio
import json
import logging
import math
import random
import signal
import sys
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

YOLO_LABELS = ("person", "car", "dog", "bicycle")
WAYPOINT_EVENTS = ("add-waypoint", "remove-waypoint", "clear-waypoints", "start-navigation")


@dataclass
class RoverState:
    """Simulated rover pose."""
    lat: float = 28.6139
    lon: float = 77.2090
    heading: float = 0.0
    speed: float = 0.0


class RoverSimulator:
    """
    Simulated rover client with automatic reconnection.

    Features:
    - Registers as rover on every (re)connect
    - Exponential backoff on connection failure (1s -> 30s max)
    """

    def __init__(
        self,
        server_url: str,
        gps_hz: float = 2.0,
        radar_hz: float = 5.0,
        yolo_interval: float = 2.0,
        max_backoff_seconds: float = 30.0,
        initial_backoff_seconds: float = 1.0,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize simulator.

        Args:
            server_url: Relay WebSocket URL (e.g., ws://127.0.0.1:3000/ws)
            gps_hz: GPS update rate
            radar_hz: Radar update rate
            yolo_interval: Seconds between detection attempts
            max_backoff_seconds: Maximum backoff between reconnect attempts
            initial_backoff_seconds: Initial backoff
            rng: Random source (seed it for reproducible runs)
            clock: Time source for the speed oscillation
        """
        self.server_url = server_url
        self.gps_period = 1.0 / gps_hz
        self.radar_period = 1.0 / radar_hz
        self.yolo_interval = yolo_interval
        self.max_backoff = max_backoff_seconds
        self.initial_backoff = initial_backoff_seconds
        self.rng = rng or random.Random()
        self.clock = clock

        self.state = RoverState()
        self._running = False
        self._current_backoff = initial_backoff_seconds

    def next_gps(self) -> dict:
        """Advance the circular drive one step and return a gps-data payload."""
        s = self.state
        s.heading = (s.heading + 2) % 360
        s.speed = 5 + 5 * math.sin(self.clock() / 2)

        rad = math.radians(s.heading)
        s.lat += math.cos(rad) * 0.00001
        s.lon += math.sin(rad) * 0.00001

        return {
            "lat": s.lat,
            "lon": s.lon,
            "speed": abs(s.speed),
            "heading": s.heading,
        }

    def next_radar(self) -> dict:
        """Random distances between 10 and 160 cm."""
        return {
            side: self.rng.random() * 150 + 10
            for side in ("front", "right", "back", "left")
        }

    def maybe_detections(self) -> Optional[List[dict]]:
        """A single random detection 30% of the time, otherwise None."""
        if self.rng.random() <= 0.7:
            return None
        return [{
            "x": self.rng.random() * 300,
            "y": self.rng.random() * 200,
            "w": 50 + self.rng.random() * 100,
            "h": 50 + self.rng.random() * 100,
            "label": self.rng.choice(YOLO_LABELS),
            "conf": f"{0.7 + self.rng.random() * 0.3:.2f}",
        }]

    async def run(self) -> None:
        """Connect, simulate, and reconnect until stopped."""
        self._running = True
        while self._running:
            try:
                logger.info(f"Connecting to {self.server_url}...")
                async with websockets.connect(
                    self.server_url,
                    ping_interval=20,
                    ping_timeout=10,
                    close_timeout=5,
                ) as ws:
                    self._current_backoff = self.initial_backoff
                    await self._session(ws)
            except asyncio.CancelledError:
                break
            except (ConnectionClosed, WebSocketException, OSError) as e:
                logger.error(f"Connection error: {e}")

            if not self._running:
                break

            logger.info(f"Reconnecting in {self._current_backoff:.1f}s...")
            await asyncio.sleep(self._current_backoff)
            self._current_backoff = min(self._current_backoff * 2, self.max_backoff)

    def stop(self) -> None:
        self._running = False

    async def _session(self, ws) -> None:
        """One connected session: register, then stream until disconnect."""
        await self._emit(ws, "register-rover")
        logger.info("Simulator connected, sending simulated rover data")

        tasks = [
            asyncio.create_task(self._every(ws, self.gps_period, "gps-data", self.next_gps)),
            asyncio.create_task(self._every(ws, self.radar_period, "radar-data", self.next_radar)),
            asyncio.create_task(self._every(ws, self.yolo_interval, "yolo-detections", self.maybe_detections)),
            asyncio.create_task(self._receive(ws)),
        ]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in done:
                if task.exception():
                    raise task.exception()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _every(self, ws, period: float, event: str, produce: Callable[[], object]) -> None:
        while True:
            data = produce()
            if data is not None:
                await self._emit(ws, event, data)
            await asyncio.sleep(period)

    async def _receive(self, ws) -> None:
        async for raw in ws:
            try:
                msg = json.loads(raw)
            except ValueError:
                logger.warning(f"Invalid frame from relay: {raw!r}")
                continue
            event = msg.get("event") if isinstance(msg, dict) else None
            if event == "registered":
                data = msg.get("data") or {}
                logger.info(f"Registered as: {data.get('role')}")
            elif event in WAYPOINT_EVENTS:
                logger.info(f"{event}: {msg.get('data')}")
            else:
                logger.debug(f"Received from relay: {msg}")

    @staticmethod
    async def _emit(ws, event: str, data: object = None) -> None:
        await ws.send(json.dumps({"event": event, "data": data}))


async def main_async(args: argparse.Namespace) -> None:
    """Async main entry point."""
    simulator = RoverSimulator(server_url=args.server, gps_hz=args.gps_rate, radar_hz=args.radar_rate)
    task = asyncio.create_task(simulator.run())

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Shutdown signal received")
        simulator.stop()
        task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await task
    except asyncio.CancelledError:
        pass


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Rover simulator for the relay dashboard",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--server",
        type=str,
        default="ws://127.0.0.1:3000/ws",
        help="Relay WebSocket URL",
    )
    parser.add_argument(
        "--gps-rate",
        type=float,
        default=2.0,
        help="GPS update rate (Hz)",
    )
    parser.add_argument(
        "--radar-rate",
        type=float,
        default=5.0,
        help="Radar update rate (Hz)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        asyncio.run(main_async(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
