"""MQTT transport built on paho-mqtt's threaded network loop."""

import logging
import threading
from typing import Any, Callable, Dict, Optional, Tuple, Union, cast

import paho.mqtt.client as mqtt

from phatmqtt.errors import PublishError, TransportConnectError
from phatmqtt.models import ClientStatus

logger = logging.getLogger(__name__)

STATUS_TOPIC = "phatserver/status"
IMAGE_TOPIC = "phat/image"
CLIENT_TOPIC = "phat/client/+"

MessageCallback = Callable[[str, bytes], Any]


def parse_broker(raw_broker: str) -> Tuple[str, int, bool]:
    """Split ``tcp://host:port`` style broker addresses into host, port and TLS flag."""
    value = raw_broker.strip()
    if not value:
        raise ValueError("Broker value is empty")

    scheme = "tcp"
    if "://" in value:
        scheme, value = value.split("://", 1)
    if "/" in value:
        value = value.split("/", 1)[0]

    use_tls = scheme.lower() in ("ssl", "tls", "mqtts")
    host, _, maybe_port = value.rpartition(":")
    if host and maybe_port.isdigit():
        return host.strip("[]"), int(maybe_port), use_tls
    return value, 8883 if use_tls else 1883, use_tls


class MqttTransport:
    """
    Broker connection for the server.

    Publishes the server's own liveness on STATUS_TOPIC: ALIVE on every
    (re)connect, DEAD as the last will, SHUTDOWN on a clean disconnect.
    Subscriptions are replayed after every reconnect.
    """

    def __init__(
        self,
        broker: str,
        client_id: str = "phatmqttserver",
        *,
        connect_timeout: float = 10.0,
        publish_timeout: float = 10.0,
        keepalive: int = 60,
    ) -> None:
        self.broker = broker
        self.client_id = client_id
        self._connect_timeout = connect_timeout
        self._publish_timeout = publish_timeout
        self._keepalive = keepalive
        self._client: Optional[mqtt.Client] = None
        self._connected = threading.Event()
        self._connect_failure: Optional[str] = None
        self._subscriptions: Dict[str, Tuple[int, MessageCallback]] = {}

    def is_connected(self) -> bool:
        client = self._client
        return client is not None and client.is_connected()

    def subscribe(self, topic: str, qos: int, callback: MessageCallback) -> None:
        """Register ``callback(topic, payload)`` for a topic pattern."""
        self._subscriptions[topic] = (qos, callback)
        client = self._client
        if client is not None:
            client.message_callback_add(topic, self._wrap(callback))
            if client.is_connected():
                client.subscribe(topic, qos=qos)

    def _wrap(self, callback: MessageCallback) -> Callable[..., None]:
        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                callback(msg.topic, msg.payload)
            except Exception:
                logger.exception(f"MQTT message handler failed for topic {msg.topic}")

        return on_message

    def connect(self) -> None:
        """
        Connect to the broker and block until the broker acknowledges.

        Raises:
            TransportConnectError: the broker is unreachable, refused the
                connection or did not answer within the connect timeout.
        """
        try:
            host, port, use_tls = parse_broker(self.broker)
        except ValueError as e:
            raise TransportConnectError(str(e)) from e

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
        )
        client.enable_logger(logger)
        client.will_set(STATUS_TOPIC, ClientStatus.DEAD.value, qos=1, retain=True)
        if use_tls:
            client.tls_set()

        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        for topic, (_qos, callback) in self._subscriptions.items():
            client.message_callback_add(topic, self._wrap(callback))

        self._connected.clear()
        self._connect_failure = None
        try:
            client.connect(host, port, keepalive=self._keepalive)
        except OSError as e:
            raise TransportConnectError(f"Unable to reach broker {self.broker}: {e}") from e

        self._client = client
        client.loop_start()

        if not self._connected.wait(self._connect_timeout):
            self._teardown()
            raise TransportConnectError(
                f"No answer from broker {self.broker} after {self._connect_timeout}s"
            )
        if self._connect_failure is not None:
            failure = self._connect_failure
            self._teardown()
            raise TransportConnectError(f"Broker {self.broker} refused connection: {failure}")

    def _on_connect(
        self,
        client: mqtt.Client,
        _userdata: Any,
        _flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        if reason_code.is_failure:
            logger.warning(f"MQTT connect failed: {reason_code}")
            self._connect_failure = str(reason_code)
            self._connected.set()
            return

        client.publish(STATUS_TOPIC, ClientStatus.ALIVE.value, qos=1, retain=True)
        logger.info(f"MQTT broker connected (broker={self.broker})")
        for topic, (qos, _callback) in self._subscriptions.items():
            logger.debug(f"MQTT subscribing topic={topic}")
            client.subscribe(topic, qos=qos)
        self._connected.set()

    def _on_disconnect(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        _disconnect_flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        logger.warning(f"MQTT disconnected: {reason_code}")

    def publish(
        self, topic: str, payload: Union[str, bytes], qos: int = 1, retain: bool = False
    ) -> None:
        """
        Publish and wait for the broker to acknowledge.

        Raises:
            PublishError: not connected, rejected, or no acknowledgement within
                the publish timeout.
        """
        client = self._client
        if client is None:
            raise PublishError("MQTT client is not connected")

        info = client.publish(topic, payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(f"Publish to {topic} failed: {mqtt.error_string(info.rc)}")
        try:
            info.wait_for_publish(timeout=self._publish_timeout)
        except (RuntimeError, ValueError) as e:
            raise PublishError(f"Publish to {topic} failed: {e}") from e
        if not info.is_published():
            raise PublishError(f"Publish to {topic} timed out after {self._publish_timeout}s")

    def disconnect(self) -> None:
        """Announce SHUTDOWN and close the connection."""
        if self._client is None:
            return
        try:
            self.publish(STATUS_TOPIC, ClientStatus.SHUTDOWN.value, qos=1, retain=True)
        except PublishError as e:
            logger.warning(f"Unable to publish shutdown status: {e}")
        self._teardown()

    def _teardown(self) -> None:
        client = self._client
        self._client = None
        if client is None:
            return
        try:
            client.disconnect()
        finally:
            client.loop_stop()
            logger.debug("MQTT network loop stopped")
