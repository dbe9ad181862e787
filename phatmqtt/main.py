"""
phatmqtt - image cache and MQTT bridge for e-ink display clients

Accepts display-sized snapshots over HTTP, converts them to the display
palette, serves the current one with HTTP caching headers, announces new
images over MQTT and tracks which display clients are alive.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI

from phatmqtt.config import Settings, configure_logging
from phatmqtt.coordinator import Coordinator
from phatmqtt.dependencies import get_coordinator
from phatmqtt.middleware import log_requests
from phatmqtt.models import HealthResponse
from phatmqtt.mqtt import CLIENT_TOPIC, MqttTransport
from phatmqtt.routers import clients_router, images_router, metrics_router
from phatmqtt.watchdog import Watchdog

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    transport=None,
    watchdog: Optional[Watchdog] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Defaults to Settings.from_env().
        transport: MQTT transport; an MqttTransport for settings.mqtt_broker
            when omitted.
        watchdog: systemd notifier; created from the transport when omitted.
    """
    settings = settings or Settings.from_env()
    if transport is None:
        transport = MqttTransport(
            settings.mqtt_broker,
            settings.mqtt_client_id,
            connect_timeout=settings.mqtt_connect_timeout,
            publish_timeout=settings.mqtt_publish_timeout,
        )
    if watchdog is None:
        watchdog = Watchdog(transport.is_connected)

    coordinator = Coordinator(
        transport,
        settings.external_url,
        announce_interval=settings.announce_interval,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup: a missing broker is fatal, TransportConnectError aborts here
        transport.subscribe(CLIENT_TOPIC, 1, coordinator.handle_presence_message)
        transport.connect()
        coordinator.notifier.start()
        watchdog.ready()
        watchdog.start()
        yield
        # Shutdown
        await watchdog.stop()
        await coordinator.notifier.stop()
        transport.disconnect()

    app = FastAPI(
        title="phatmqtt",
        version="0.1.0",
        description="""
Image cache and MQTT bridge for e-ink display clients. Uploaded snapshots
are validated, converted to the display palette and announced over MQTT.
        """,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.coordinator = coordinator
    app.state.transport = transport

    app.middleware("http")(log_requests)

    # Include routers
    app.include_router(metrics_router)
    app.include_router(images_router)
    app.include_router(clients_router)

    @app.get("/health", tags=["Health"], response_model=HealthResponse)
    async def health_check(
        coordinator: Coordinator = Depends(get_coordinator),
    ) -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            mqtt_connected=transport.is_connected(),
            image_ready=coordinator.image_ready(),
        )

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.verbose)
    logger.info(f"Starting HTTP server (listen-addr={settings.host}:{settings.port})")
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.verbose else "info",
    )


if __name__ == "__main__":
    run()
