"""
Routers Package
"""

from phatmqtt.routers.clients import router as clients_router
from phatmqtt.routers.images import router as images_router
from phatmqtt.routers.metrics import router as metrics_router

__all__ = [
    "clients_router",
    "images_router",
    "metrics_router",
]
