"""
HTTP access logging.
"""

import logging
import time

from fastapi import Request

logger = logging.getLogger("phatmqtt.access")


async def log_requests(request: Request, call_next):
    """Log one line per request with client address, status, size and duration."""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    client_addr = f"{request.client.host}:{request.client.port}" if request.client else "-"
    logger.info(
        f"{request.method} {request.url.path} "
        f"(client-addr={client_addr}, code={response.status_code}, "
        f"response-size={response.headers.get('content-length', '-')}, "
        f"duration={duration_ms:.1f}ms)"
    )
    return response
