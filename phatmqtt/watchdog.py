"""
systemd readiness and watchdog notifications.

Without NOTIFY_SOCKET (not running under systemd) every notification is a
silent no-op.
"""

import asyncio
import logging
import os
from typing import Callable, Optional

import sdnotify

logger = logging.getLogger(__name__)


def watchdog_interval(environ=None) -> Optional[float]:
    """Half the systemd watchdog timeout in seconds, or None if disabled."""
    env = os.environ if environ is None else environ
    raw = env.get("WATCHDOG_USEC")
    if not raw:
        return None
    try:
        usec = int(raw)
    except ValueError:
        logger.error(f"systemd watchdog issue: invalid WATCHDOG_USEC={raw!r}")
        return None
    if usec <= 0:
        return None
    return usec / 1_000_000 / 2


class Watchdog:
    """Pings the systemd watchdog while the MQTT connection is up."""

    def __init__(
        self,
        is_healthy: Callable[[], bool],
        notifier: Optional[sdnotify.SystemdNotifier] = None,
    ):
        self._is_healthy = is_healthy
        self._notifier = notifier or sdnotify.SystemdNotifier()
        self._task: Optional[asyncio.Task] = None

    def ready(self) -> None:
        self._notifier.notify("READY=1")

    def ping(self) -> bool:
        if self._is_healthy():
            logger.debug("Pinging systemd watchdog")
            self._notifier.notify("WATCHDOG=1")
            return True
        logger.warning("Skipping sd notify due to disconnected MQTT client")
        return False

    async def run(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.ping()

    def start(self, interval: Optional[float] = None) -> bool:
        """Start the ping task if systemd enabled the watchdog."""
        every = interval if interval is not None else watchdog_interval()
        if every is None:
            logger.debug("systemd watchdog not enabled")
            return False
        self._task = asyncio.create_task(self.run(every), name="systemd-watchdog")
        return True

    async def stop(self) -> None:
        self._notifier.notify("STOPPING=1")
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
