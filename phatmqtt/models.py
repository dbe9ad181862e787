"""
phatmqtt - Pydantic models for the HTTP and MQTT payloads
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# Enums
class ClientStatus(str, Enum):
    """Liveness states reported by display clients and by the server itself."""

    ALIVE = "ALIVE"
    DEAD = "DEAD"
    SHUTDOWN = "SHUTDOWN"


# Presence Models
class ClientPresence(BaseModel):
    """
    Last known state of one display client.

    status is kept as reported so clients may introduce states beyond
    ClientStatus.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str
    status: str
    last_seen: datetime


class ClientStatusEntry(BaseModel):
    """One entry of the client listing, keyed by client id."""

    model_config = ConfigDict(populate_by_name=True)

    status: str
    last_seen: datetime = Field(alias="lastSeen")

    @classmethod
    def from_presence(cls, presence: ClientPresence) -> "ClientStatusEntry":
        return cls(status=presence.status, last_seen=presence.last_seen)


# Image Models
class ImageAnnouncement(BaseModel):
    """Published on the image topic whenever a new image is available."""

    url: str = Field(description="Where clients download the image")
    hash: str = Field(description="Image fingerprint, identical to the ETag")


class ImageStoredResponse(BaseModel):
    hash: str
    content_type: str
    size: int
    stored_at: datetime


class HealthResponse(BaseModel):
    status: str = "healthy"
    mqtt_connected: bool
    image_ready: bool
