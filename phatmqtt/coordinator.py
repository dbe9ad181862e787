"""
Coordinator - the single entry point for HTTP handlers and MQTT callbacks.

Owns the image store and presence registry, keeps metrics in step with them
and hands new images to the notifier.
"""

import logging
import time
from typing import Dict, Optional, Tuple, Union

from fastapi import status

from phatmqtt.errors import ImageValidationError
from phatmqtt.metrics import ServerMetrics
from phatmqtt.models import ClientPresence
from phatmqtt.notifier import DEFAULT_ANNOUNCE_INTERVAL, Notifier
from phatmqtt.presence import PresenceRegistry
from phatmqtt.store import CachedImage, ImageStore

logger = logging.getLogger(__name__)

TOPIC_SEGMENTS = 3


def client_id_from_topic(topic: str) -> Optional[str]:
    """Return the client id from ``prefix/prefix/client_id``, or None if malformed."""
    parts = topic.split("/")
    if len(parts) != TOPIC_SEGMENTS or not all(parts):
        return None
    return parts[2]


class Coordinator:
    """Ties uploads, downloads and presence messages to the shared state."""

    def __init__(
        self,
        transport,
        external_url: str,
        metrics: Optional[ServerMetrics] = None,
        announce_interval: Optional[float] = None,
    ):
        self.metrics = metrics or ServerMetrics()
        self.store = ImageStore()
        self.presence = PresenceRegistry()
        self.notifier = Notifier(
            self.store,
            transport,
            external_url,
            metrics=self.metrics,
            interval=(
                announce_interval if announce_interval is not None else DEFAULT_ANNOUNCE_INTERVAL
            ),
        )

    def handle_upload(
        self, raw: bytes, perform_conversion: bool = True
    ) -> Tuple[int, Union[CachedImage, ImageValidationError]]:
        """
        Store an uploaded image and schedule its announcement.

        Returns:
            (201, CachedImage) on success, (406, ImageValidationError) when the
            image is rejected; the previously cached image is then kept.
        """
        try:
            image = self.store.set(raw, perform_conversion)
        except ImageValidationError as e:
            logger.warning(f"Rejected image upload ({e.kind.value}): {e.message}")
            return status.HTTP_406_NOT_ACCEPTABLE, e

        self.metrics.images_put.inc()
        self.metrics.last_upload.set(time.time())
        self.notifier.dispatch(image)
        return status.HTTP_201_CREATED, image

    def handle_download(self) -> Tuple[int, Optional[CachedImage]]:
        image = self.store.get()
        if image is None:
            logger.warning("GET request but no image ready for download")
            return status.HTTP_404_NOT_FOUND, None

        logger.info(f"GET request, serving cached image (format={image.content_type})")
        self.metrics.images_get.inc()
        return status.HTTP_200_OK, image

    def handle_presence_message(self, topic: str, payload: bytes) -> Optional[ClientPresence]:
        """
        Record a client status message received on ``phat/client/<id>``.

        Malformed topics, non UTF-8 payloads and blank payloads are logged
        and ignored.
        """
        client_id = client_id_from_topic(topic)
        if client_id is None:
            logger.warning(f"Ignoring status message on malformed topic {topic!r}")
            return None
        try:
            client_status = payload.decode("utf-8").strip()
        except UnicodeDecodeError:
            logger.warning(f"Ignoring undecodable status payload from {client_id}")
            return None
        if not client_status:
            logger.warning(f"Ignoring empty status payload from {client_id}")
            return None

        logger.info(f"Client status update (client={client_id}, status={client_status})")
        presence = self.presence.upsert(client_id, client_status)
        self.metrics.set_client_counts(self.presence.counts_by_status())
        return presence

    def list_clients(self) -> Dict[str, ClientPresence]:
        return self.presence.snapshot()

    def image_ready(self) -> bool:
        return self.store.get() is not None

    def announce_now(self) -> bool:
        """Re-announce the cached image immediately. False if nothing was published."""
        return self.notifier.announce_safely(None, "manual")
