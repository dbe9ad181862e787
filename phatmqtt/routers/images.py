"""
Image routes - upload of new snapshots and download by display clients
"""

from datetime import datetime
from email.utils import format_datetime, parsedate_to_datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse, Response

from phatmqtt.coordinator import Coordinator
from phatmqtt.dependencies import get_coordinator
from phatmqtt.errors import ImageValidationError
from phatmqtt.models import ImageStoredResponse
from phatmqtt.store import CachedImage

router = APIRouter(tags=["Images"])


def etag_for(image: CachedImage) -> str:
    return f'"{image.fingerprint}"'


def _etag_matches(header: str, image: CachedImage) -> bool:
    for candidate in header.split(","):
        candidate = candidate.strip()
        if candidate == "*":
            return True
        if candidate.startswith("W/"):
            candidate = candidate[2:]
        if candidate.strip('"') == image.fingerprint:
            return True
    return False


def _parse_http_date(value: str) -> Optional[datetime]:
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None or parsed.tzinfo is None:
        return None
    return parsed


def is_not_modified(request: Request, image: CachedImage) -> bool:
    """
    Evaluate conditional GET headers against the cached image.

    If-None-Match takes precedence; If-Modified-Since is only consulted when
    it is absent. HTTP dates have one second resolution.
    """
    if_none_match = request.headers.get("if-none-match")
    if if_none_match is not None:
        return _etag_matches(if_none_match, image)

    if_modified_since = request.headers.get("if-modified-since")
    if if_modified_since:
        since = _parse_http_date(if_modified_since)
        if since is not None:
            return image.stored_at.replace(microsecond=0) <= since
    return False


@router.put(
    "/",
    response_model=ImageStoredResponse,
    status_code=status.HTTP_201_CREATED,
)
@router.put(
    "/image",
    response_model=ImageStoredResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_image(
    request: Request,
    raw: str = Query(
        default="", description="Exactly \"true\" stores the image without palette conversion"
    ),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """
    Upload a new image for the displays.

    The image must be exactly the display resolution. Unless ``raw`` is
    exactly ``true`` it is converted to the display palette and stored as PNG. Subscribers are
    notified in the background once the image is cached.
    """
    if not request.headers.get("content-type", "").startswith("image/"):
        return PlainTextResponse(
            "ERROR: Content-type not image/*",
            status_code=status.HTTP_406_NOT_ACCEPTABLE,
        )

    body = await request.body()
    code, result = await run_in_threadpool(coordinator.handle_upload, body, raw != "true")
    if isinstance(result, ImageValidationError):
        return PlainTextResponse(f"ERROR: {result.message}", status_code=code)

    return ImageStoredResponse(
        hash=result.fingerprint,
        content_type=result.content_type,
        size=result.size,
        stored_at=result.stored_at,
    )


@router.get("/image")
async def download_image(
    request: Request,
    coordinator: Coordinator = Depends(get_coordinator),
) -> Response:
    """
    Fetch the cached image.

    Supports conditional requests with If-None-Match and If-Modified-Since.
    """
    code, image = coordinator.handle_download()
    if image is None:
        return PlainTextResponse("No image cached yet\n", status_code=code)

    headers = {
        "ETag": etag_for(image),
        "Last-Modified": format_datetime(image.stored_at, usegmt=True),
        "Cache-Control": "no-cache",
    }
    if is_not_modified(request, image):
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers=headers)

    return Response(
        content=image.data,
        media_type=image.content_type,
        headers=headers,
    )
