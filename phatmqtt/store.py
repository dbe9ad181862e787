"""
In-memory storage for the current display image.

Only the most recent accepted image is kept; it is lost on restart.
"""

import hashlib
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from phatmqtt import imaging

logger = logging.getLogger(__name__)


def fingerprint(data: bytes) -> str:
    """Hex SHA-256 of the image bytes, used as the HTTP ETag."""
    return hashlib.sha256(data).hexdigest()


@dataclass(frozen=True)
class CachedImage:
    """The most recently accepted image, ready to be served."""

    data: bytes = field(repr=False)
    content_type: str
    fingerprint: str
    stored_at: datetime

    @classmethod
    def create(
        cls,
        data: bytes,
        content_type: str,
        stored_at: Optional[datetime] = None,
    ) -> "CachedImage":
        return cls(
            data=data,
            content_type=content_type,
            fingerprint=fingerprint(data),
            stored_at=stored_at or datetime.now(timezone.utc),
        )

    @property
    def size(self) -> int:
        return len(self.data)


class ImageStore:
    """Holds a single CachedImage and swaps it atomically."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._image: Optional[CachedImage] = None

    def set(self, raw: bytes, perform_conversion: bool = True) -> CachedImage:
        """
        Validate, optionally convert, and store an uploaded image.

        Conversion runs before the lock is taken so readers are only ever
        blocked for the reference swap.

        Raises:
            ImageValidationError: the previous image is kept.
        """
        data, content_type = imaging.convert(raw, perform_conversion)
        image = CachedImage.create(data, content_type)
        with self._lock:
            self._image = image
        logger.info(f"Stored image (size={image.size}, format={image.content_type})")
        return image

    def get(self) -> Optional[CachedImage]:
        """Return the current image, or None if nothing was stored yet."""
        with self._lock:
            return self._image
