"""
Image announcements over MQTT.

MQTT gives late subscribers no way to learn the current image, so besides
announcing every upload the notifier re-announces the cached image on a
fixed period.
"""

import asyncio
import logging
from typing import List, Optional

from phatmqtt.errors import NotReadyError, PublishError
from phatmqtt.metrics import ServerMetrics
from phatmqtt.models import ImageAnnouncement
from phatmqtt.mqtt import IMAGE_TOPIC
from phatmqtt.store import CachedImage, ImageStore

logger = logging.getLogger(__name__)

DEFAULT_ANNOUNCE_INTERVAL = 600.0


class Notifier:
    """Publishes "image available" messages for the current CachedImage."""

    def __init__(
        self,
        store: ImageStore,
        transport,
        external_url: str,
        metrics: Optional[ServerMetrics] = None,
        topic: str = IMAGE_TOPIC,
        interval: float = DEFAULT_ANNOUNCE_INTERVAL,
    ):
        """
        Initialize the notifier.

        Args:
            store: Source of the image announced by the periodic loop.
            transport: Anything with publish(topic, payload, qos, retain).
            external_url: Base URL display clients use to reach this server.
            metrics: Failure counter sink.
            topic: Topic announcements are published on.
            interval: Seconds between periodic re-announcements.
        """
        self._store = store
        self._transport = transport
        self._metrics = metrics
        self.external_url = external_url.rstrip("/")
        self.topic = topic
        self.interval = interval
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional["asyncio.Queue[CachedImage]"] = None
        self._tasks: List[asyncio.Task] = []

    @property
    def image_url(self) -> str:
        return f"{self.external_url}/image"

    @property
    def running(self) -> bool:
        return self._loop is not None

    def build_announcement(self, image: CachedImage) -> ImageAnnouncement:
        return ImageAnnouncement(url=self.image_url, hash=image.fingerprint)

    def announce(self, image: Optional[CachedImage] = None) -> ImageAnnouncement:
        """
        Publish an announcement for ``image``, or for the stored image.

        Blocks until the transport acknowledges the publish.

        Raises:
            NotReadyError: no image given and none stored.
            PublishError: the transport failed.
        """
        if image is None:
            image = self._store.get()
        if image is None:
            raise NotReadyError("not ready")

        announcement = self.build_announcement(image)
        self._transport.publish(
            self.topic, announcement.model_dump_json(), qos=1, retain=False
        )
        logger.debug(f"Published announcement (hash={announcement.hash})")
        return announcement

    def announce_safely(self, image: Optional[CachedImage] = None, reason: str = "") -> bool:
        """announce() with failures logged and counted instead of raised."""
        try:
            self.announce(image)
            return True
        except NotReadyError:
            logger.debug(f"Skipping {reason} announcement, no image cached yet")
        except PublishError as e:
            logger.error(f"Failed to publish {reason} announcement: {e}")
            if self._metrics is not None:
                self._metrics.announce_failures.inc()
        except Exception:
            # The worker and periodic loops must outlive any single announcement
            logger.exception(f"Unexpected error during {reason} announcement")
            if self._metrics is not None:
                self._metrics.announce_failures.inc()
        return False

    def dispatch(self, image: CachedImage) -> bool:
        """
        Queue an announcement for the background worker.

        Safe to call from any thread; never waits for the publish.
        """
        loop, queue = self._loop, self._queue
        if loop is None or queue is None:
            logger.warning("Announcement worker not running, dropping announcement")
            return False
        loop.call_soon_threadsafe(queue.put_nowait, image)
        return True

    async def run_worker(self) -> None:
        """Publish queued upload announcements one at a time."""
        assert self._queue is not None
        while True:
            image = await self._queue.get()
            try:
                await asyncio.to_thread(self.announce_safely, image, "upload")
            finally:
                self._queue.task_done()

    async def run_periodic(self, interval: Optional[float] = None) -> None:
        """Re-announce whatever is cached every ``interval`` seconds, forever."""
        every = interval if interval is not None else self.interval
        while True:
            await asyncio.sleep(every)
            await asyncio.to_thread(self.announce_safely, None, "periodic")

    def start(self) -> None:
        """Start the worker and periodic tasks on the running event loop."""
        if self._loop is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._tasks = [
            asyncio.create_task(self.run_worker(), name="announce-worker"),
            asyncio.create_task(self.run_periodic(), name="announce-periodic"),
        ]
        logger.info(f"Announcing images every {self.interval}s on {self.topic}")

    async def stop(self) -> None:
        """Cancel the background tasks. Queued announcements are discarded."""
        self._loop = None
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._queue = None
