"""
Tests for the MQTT transport that need no broker
"""

import socket

import pytest

from phatmqtt.errors import PublishError, TransportConnectError
from phatmqtt.mqtt import MqttTransport, parse_broker


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("tcp://127.0.0.1:1883", ("127.0.0.1", 1883, False)),
        ("tcp://broker.local", ("broker.local", 1883, False)),
        ("mqtts://broker.local", ("broker.local", 8883, True)),
        ("ssl://broker.local:8884/", ("broker.local", 8884, True)),
        ("10.0.0.2:1884", ("10.0.0.2", 1884, False)),
    ],
)
def test_parse_broker(raw, expected):
    assert parse_broker(raw) == expected


def test_parse_broker_rejects_empty():
    with pytest.raises(ValueError):
        parse_broker("  ")


def _closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_connect_refused_raises_transport_error():
    transport = MqttTransport(f"tcp://127.0.0.1:{_closed_port()}", connect_timeout=1)
    with pytest.raises(TransportConnectError):
        transport.connect()
    assert not transport.is_connected()


def test_empty_broker_raises_transport_error():
    with pytest.raises(TransportConnectError):
        MqttTransport("").connect()


def test_publish_before_connect_fails():
    transport = MqttTransport("tcp://127.0.0.1:1883")
    with pytest.raises(PublishError):
        transport.publish("phat/image", "{}")


def test_disconnect_without_connection_is_noop():
    MqttTransport("tcp://127.0.0.1:1883").disconnect()
