"""
Runtime configuration read from the environment.
"""

import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel

# Load environment variables
load_dotenv()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseModel):
    """Service settings. Every field maps to one environment variable."""

    host: str = "0.0.0.0"
    port: int = 39391
    mqtt_broker: str = "tcp://127.0.0.1:1883"
    mqtt_client_id: str = "phatmqttserver"
    mqtt_connect_timeout: float = 10.0
    mqtt_publish_timeout: float = 10.0
    external_url: str = "http://127.0.0.1:39391"
    announce_interval: float = 600.0
    verbose: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "39391")),
            mqtt_broker=os.getenv("MQTT_BROKER", "tcp://127.0.0.1:1883"),
            mqtt_client_id=os.getenv("MQTT_CLIENT_ID", "phatmqttserver"),
            mqtt_connect_timeout=float(os.getenv("MQTT_CONNECT_TIMEOUT", "10")),
            mqtt_publish_timeout=float(os.getenv("MQTT_PUBLISH_TIMEOUT", "10")),
            external_url=os.getenv("EXTERNAL_ADDR", "http://127.0.0.1:39391"),
            announce_interval=float(os.getenv("ANNOUNCE_INTERVAL", "600")),
            verbose=os.getenv("VERBOSE", "false").lower() == "true",
        )


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging once for the whole process."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )
