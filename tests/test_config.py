import pytest

from rover_relay.config import DEFAULT_WEBRTC_URL, BrokerEndpoint, RelayConfig


def test_defaults():
    config = RelayConfig.from_env({})
    assert config.broker == BrokerEndpoint(host="localhost", port=1883)
    assert config.gps_broker is None
    assert not config.has_gps_broker
    assert config.reconnect_period == 3.0
    assert config.port == 3000
    assert config.webrtc_url == DEFAULT_WEBRTC_URL
    assert config.log_level == "INFO"


def test_gps_broker_from_env():
    config = RelayConfig.from_env({
        "MQTT_BROKER_URL": "mqtt://10.0.0.5:1884",
        "MQTT_GPS_URL": "mqtts://gps.example.com",
        "MQTT_RECONNECT_PERIOD": "5",
        "RELAY_PORT": "8080",
        "LOG_LEVEL": "debug",
    })
    assert config.broker.host == "10.0.0.5"
    assert config.broker.port == 1884
    assert config.gps_broker == BrokerEndpoint(host="gps.example.com", port=8883, tls=True)
    assert config.has_gps_broker
    assert config.reconnect_period == 5.0
    assert config.port == 8080
    assert config.log_level == "DEBUG"


def test_blank_gps_url_means_no_gps_broker():
    assert RelayConfig.from_env({"MQTT_GPS_URL": "  "}).gps_broker is None


def test_websocket_url_with_credentials():
    endpoint = BrokerEndpoint.from_url("ws://rover:p%40ss@broker:8080/ws")
    assert endpoint.transport == "websockets"
    assert endpoint.ws_path == "/ws"
    assert endpoint.username == "rover"
    assert endpoint.password == "p@ss"
    assert str(endpoint) == "ws://broker:8080/ws"


@pytest.mark.parametrize("env", [
    {"MQTT_BROKER_URL": "http://broker"},
    {"MQTT_BROKER_URL": "mqtt://"},
    {"MQTT_RECONNECT_PERIOD": "0"},
    {"RELAY_PORT": "abc"},
])
def test_invalid_config_raises(env):
    with pytest.raises(ValueError):
        RelayConfig.from_env(env)
