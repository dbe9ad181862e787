"""
Request dependencies shared by the routers
"""

from fastapi import Request

from phatmqtt.coordinator import Coordinator


async def get_coordinator(request: Request) -> Coordinator:
    """
    Dependency that provides the application's Coordinator.

    Usage:
        @router.get("/example")
        def example(coordinator: Coordinator = Depends(get_coordinator)):
            ...
    """
    return request.app.state.coordinator
