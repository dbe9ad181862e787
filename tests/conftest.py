"""
Shared fixtures: an in-memory MQTT transport and image factories
"""

import io
import struct
import threading
import zlib
from typing import Callable, Dict, List, Tuple

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from phatmqtt.config import Settings
from phatmqtt.errors import PublishError, TransportConnectError
from phatmqtt.main import create_app
from phatmqtt.mqtt import CLIENT_TOPIC
from phatmqtt.watchdog import Watchdog


def make_image(size=(212, 104), color=(255, 0, 0), image_format="PNG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=image_format)
    return buf.getvalue()


def make_png_header(width: int, height: int) -> bytes:
    """A PNG with a valid header and no usable pixel data."""

    def chunk(chunk_type: bytes, body: bytes) -> bytes:
        crc = zlib.crc32(chunk_type + body) & 0xFFFFFFFF
        return struct.pack(">I", len(body)) + chunk_type + body + struct.pack(">I", crc)

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", ihdr)
        + chunk(b"IDAT", zlib.compress(b""))
        + chunk(b"IEND", b"")
    )


class FakeTransport:
    """Records publishes instead of talking to a broker."""

    def __init__(self, fail_publish: bool = False, fail_connect: bool = False):
        self.fail_publish = fail_publish
        self.fail_connect = fail_connect
        self.connected = False
        self.published: List[Tuple[str, str, int, bool]] = []
        self.publish_attempts = 0
        self.subscriptions: Dict[str, Callable[[str, bytes], object]] = {}
        self._lock = threading.Lock()
        self._published_event = threading.Condition(self._lock)

    def connect(self) -> None:
        if self.fail_connect:
            raise TransportConnectError("broker unreachable")
        self.connected = True

    def disconnect(self) -> None:
        self.connected = False

    def is_connected(self) -> bool:
        return self.connected

    def subscribe(self, topic, qos, callback) -> None:
        self.subscriptions[topic] = callback

    def publish(self, topic, payload, qos=1, retain=False) -> None:
        with self._lock:
            self.publish_attempts += 1
            self._published_event.notify_all()
            if self.fail_publish:
                raise PublishError("broker went away")
            self.published.append((topic, payload, qos, retain))

    def wait_for_attempts(self, count: int, timeout: float = 5.0) -> bool:
        with self._lock:
            return self._published_event.wait_for(
                lambda: self.publish_attempts >= count, timeout
            )

    def deliver(self, topic: str, payload: bytes):
        """Simulate a message arriving on the client status subscription."""
        return self.subscriptions[CLIENT_TOPIC](topic, payload)


class FakeSystemdNotifier:
    def __init__(self):
        self.messages: List[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)


@pytest.fixture
def png_image() -> bytes:
    return make_image()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def settings() -> Settings:
    return Settings(external_url="http://phat.test:39391", announce_interval=3600)


@pytest.fixture
def app(settings, transport):
    watchdog = Watchdog(transport.is_connected, notifier=FakeSystemdNotifier())
    return create_app(settings, transport=transport, watchdog=watchdog)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
