#!/usr/bin/env python3
"""
Rover Relay - Main Entry Point

This server bridges the rover's MQTT bus and the operator dashboards:
- Routes sensor topics to dashboards as canonical events
- Republishes drive / pan-tilt / device commands to MQTT
- Relays waypoints and WebRTC signaling between dashboards and rovers

Environment variables are listed in ``rover_relay.config``.

Usage:
    export MQTT_BROKER_URL=mqtt://192.168.1.10:1883
    python -m rover_relay.main
"""

import asyncio
import logging
import signal
import sys
from typing import List, Optional

import uvicorn

from .config import RelayConfig
from .dispatch import Broadcaster, CommandDispatcher
from .mqtt_bridge import MQTTConnector
from .registry import ClientRegistry
from .router import MessageRouter
from .topics import gps_bus_topics, main_bus_topics
from .ws_server import WebSocketServer

logger = logging.getLogger(__name__)


class RelayGateway:
    """
    Main relay integrating MQTT connectors and the WebSocket server.

    Architecture:
        ESP32 -> MQTT -> MQTTConnector -> MessageRouter -> Broadcaster -> dashboards
        dashboard -> WebSocket -> CommandDispatcher -> MQTT / rovers
    """

    def __init__(self, config: RelayConfig, client_factory=None):
        """
        Initialize relay gateway.

        Args:
            config: Relay configuration
            client_factory: Optional paho client factory passed to connectors
        """
        self.config = config

        # Components, leaf to root
        self.registry = ClientRegistry()
        self.broadcaster = Broadcaster(self.registry)
        self.router = MessageRouter(sink=self.broadcaster.broadcast_to_dashboards)

        self.main_connector = MQTTConnector(
            name="main",
            endpoint=config.broker,
            topics=main_bus_topics(has_gps_bus=config.has_gps_broker),
            router=self.router,
            reconnect_period=config.reconnect_period,
            client_factory=client_factory,
        )
        self.gps_connector: Optional[MQTTConnector] = None
        if config.gps_broker is not None:
            self.gps_connector = MQTTConnector(
                name="gps",
                endpoint=config.gps_broker,
                topics=gps_bus_topics(),
                router=self.router,
                reconnect_period=config.reconnect_period,
                client_factory=client_factory,
            )

        self.dispatcher = CommandDispatcher(
            self.registry,
            self.broadcaster,
            publisher=self.main_connector,
        )
        self.ws_server = WebSocketServer(
            self.dispatcher,
            self.registry,
            webrtc_urls={"cam1": config.webrtc_url, "cam2": config.webrtc_url_2},
            stats_provider=self._component_stats,
        )

    @property
    def connectors(self) -> List[MQTTConnector]:
        return [c for c in (self.main_connector, self.gps_connector) if c is not None]

    async def start(self) -> None:
        """Start MQTT connectors; unreachable brokers are retried in the background."""
        logger.info("Starting Rover Relay...")
        loop = asyncio.get_running_loop()

        for connector in self.connectors:
            connector.loop = loop

        results = await asyncio.gather(
            *(loop.run_in_executor(None, connector.start) for connector in self.connectors)
        )
        for connector, connected in zip(self.connectors, results):
            if connected:
                logger.info(f"MQTT connector '{connector.name}' started")
            else:
                logger.warning(f"MQTT connector '{connector.name}' not connected yet")

        logger.info(f"Rover Relay started on {self.config.host}:{self.config.port}")

    async def stop(self) -> None:
        """Stop all MQTT connectors."""
        logger.info("Stopping Rover Relay...")

        loop = asyncio.get_running_loop()
        for connector in self.connectors:
            await loop.run_in_executor(None, connector.stop)

        logger.info("Rover Relay stopped")

    def get_app(self):
        """Get the FastAPI application for uvicorn."""
        return self.ws_server.app

    def _component_stats(self) -> dict:
        """Bus-side statistics merged into the server's /health report."""
        return {
            "connectors": {c.name: c.get_stats() for c in self.connectors},
            "router": self.router.get_stats(),
            "dispatcher": self.dispatcher.get_stats(),
            "broadcaster": self.broadcaster.get_stats(),
        }


async def run_server(gateway: RelayGateway) -> None:
    """Run the server with uvicorn."""
    config = uvicorn.Config(
        gateway.get_app(),
        host=gateway.config.host,
        port=gateway.config.port,
        log_level=gateway.config.log_level.lower(),
        access_log=True,
    )
    server = uvicorn.Server(config)
    await server.serve()


async def main_async(config: RelayConfig) -> None:
    """Async main entry point."""
    gateway = RelayGateway(config)

    # Setup signal handlers
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Shutdown signal received")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await gateway.start()

        # Run server until shutdown
        server_task = asyncio.create_task(run_server(gateway))
        shutdown_task = asyncio.create_task(shutdown_event.wait())

        done, pending = await asyncio.wait(
            [server_task, shutdown_task],
            return_when=asyncio.FIRST_COMPLETED,
        )

        # Cancel pending tasks
        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    except Exception as e:
        logger.error(f"Server error: {e}")
    finally:
        await gateway.stop()


def main() -> None:
    """Main entry point."""
    try:
        config = RelayConfig.from_env()
    except ValueError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        asyncio.run(main_async(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
