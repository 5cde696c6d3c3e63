import asyncio
import json

from rover_relay.config import BrokerEndpoint, RelayConfig
from rover_relay.main import RelayGateway

from conftest import FakeClient, FakeClientFactory


def make_gateway(gps_url=None, factory=None):
    config = RelayConfig(
        broker=BrokerEndpoint.from_url("mqtt://main.local:1883"),
        gps_broker=BrokerEndpoint.from_url(gps_url) if gps_url else None,
    )
    return RelayGateway(config, client_factory=factory or FakeClientFactory())


def test_single_broker_handles_gps():
    gateway = make_gateway()
    assert gateway.gps_connector is None
    assert "rover/gps" in gateway.main_connector.topics
    assert gateway.dispatcher.publisher is gateway.main_connector


def test_gps_broker_owns_gps_topics():
    gateway = make_gateway(gps_url="mqtt://gps.local:1883")
    assert gateway.gps_connector.topics == ["rover/gps", "rover/+/gps"]
    assert "rover/gps" not in gateway.main_connector.topics
    assert "rover/+/gps" not in gateway.main_connector.topics
    assert gateway.connectors == [gateway.main_connector, gateway.gps_connector]


def test_env_message_reaches_every_dashboard_once():
    factory = FakeClientFactory()
    gateway = make_gateway(factory=factory)
    dashboards = [FakeClient("dash1"), FakeClient("dash2")]
    rover = FakeClient("rover")

    async def scenario():
        await gateway.start()
        for client in dashboards:
            gateway.registry.register_dashboard(client)
        gateway.registry.register_rover(rover)

        factory.clients[0].simulate_message("rover/env", json.dumps({"temp": 21, "hum": 40, "lux": 5}))
        await asyncio.sleep(0)
        await gateway.stop()

    asyncio.run(scenario())
    expected = [("env-data", {"temperature": 21.0, "humidity": 40.0, "lux": 5.0})]
    assert dashboards[0].sent == expected
    assert dashboards[1].sent == expected
    assert rover.sent == []


def test_both_brokers_share_one_router():
    factory = FakeClientFactory()
    gateway = make_gateway(gps_url="mqtt://gps.local:1883", factory=factory)
    dashboard = FakeClient("dash")

    async def scenario():
        await gateway.start()
        gateway.registry.register_dashboard(dashboard)
        clients = {c.connect_args[0]: c for c in factory.clients}
        main_client, gps_client = clients["main.local"], clients["gps.local"]
        gps_client.simulate_message("rover/node2/gps", json.dumps({"lat": 1, "lon": 2}))
        main_client.simulate_message("rover/imu", json.dumps({"yaw": 90}))
        await asyncio.sleep(0)
        await gateway.stop()

    asyncio.run(scenario())
    assert [event for event, _ in dashboard.sent] == ["gps-data", "imu-data"]
    assert gateway.router.get_stats()["routed"] == 2


def test_stats_report_connectors():
    gateway = make_gateway(gps_url="mqtt://gps.local:1883")
    stats = gateway.ws_server.get_stats()
    assert set(stats["connectors"]) == {"main", "gps"}
    assert stats["connectors"]["main"]["state"] == "disconnected"
