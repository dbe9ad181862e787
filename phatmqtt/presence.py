"""
Registry of display clients and their last reported liveness status.
"""

import logging
import threading
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Optional

from phatmqtt.models import ClientPresence

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """
    Maps client id to its last observed status.

    The last message observed wins regardless of the time the client sent it.
    Entries are never expired; consumers judge staleness from last_seen.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._clients: Dict[str, ClientPresence] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def upsert(
        self,
        client_id: str,
        status: str,
        observed_at: Optional[datetime] = None,
    ) -> ClientPresence:
        presence = ClientPresence(
            client_id=client_id,
            status=status,
            last_seen=observed_at or datetime.now(timezone.utc),
        )
        with self._lock:
            self._clients[client_id] = presence
        return presence

    def snapshot(self) -> Dict[str, ClientPresence]:
        """Point-in-time copy of the registry."""
        with self._lock:
            return dict(self._clients)

    def counts_by_status(self) -> Dict[str, int]:
        with self._lock:
            return dict(Counter(p.status for p in self._clients.values()))
