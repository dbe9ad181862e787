"""
Client routes - liveness of the display clients as last reported over MQTT
"""

from typing import Dict

from fastapi import APIRouter, Depends

from phatmqtt.coordinator import Coordinator
from phatmqtt.dependencies import get_coordinator
from phatmqtt.models import ClientStatusEntry

router = APIRouter(tags=["Clients"])


@router.get("/", response_model=Dict[str, ClientStatusEntry])
@router.get("/clients", response_model=Dict[str, ClientStatusEntry])
async def list_clients(
    coordinator: Coordinator = Depends(get_coordinator),
) -> Dict[str, ClientStatusEntry]:
    """
    List every display client seen since startup.

    Maps client id to its last status and when it was received. Entries are
    never expired, so a stale lastSeen is the only sign of a silent client.
    """
    return {
        client_id: ClientStatusEntry.from_presence(presence)
        for client_id, presence in coordinator.list_clients().items()
    }
