"""
Image validation and palette conversion for the display hardware.

The display only understands one resolution and a three colour palette, so
every upload is checked against TARGET_SIZE before it is accepted and, unless
the caller asks for the raw bytes to be kept, re-encoded as a paletted PNG.
"""

import io
import logging
import struct
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from phatmqtt.errors import ImageValidationError, ValidationErrorKind

logger = logging.getLogger(__name__)

TARGET_WIDTH = 212
TARGET_HEIGHT = 104
TARGET_SIZE = (TARGET_WIDTH, TARGET_HEIGHT)

# Black, white and red, in the order the panel indexes them
PALETTE_RGB = [
    (0, 0, 0),
    (255, 255, 255),
    (255, 0, 0),
]

PALETTE_MIME_TYPE = "image/png"

_DECODE_ERRORS = (
    UnidentifiedImageError,
    OSError,
    EOFError,
    SyntaxError,
    ValueError,
    Image.DecompressionBombError,
)


def create_palette_image() -> Image.Image:
    """Create a palette image for PIL quantization."""
    palette_img = Image.new("P", (1, 1))
    palette_data = []
    for r, g, b in PALETTE_RGB:
        palette_data.extend([r, g, b])
    # Pad to 256 colors (PIL requirement)
    palette_data.extend([0, 0, 0] * (256 - len(PALETTE_RGB)))
    palette_img.putpalette(palette_data)
    return palette_img


def mime_type_for(image_format: str) -> str:
    return Image.MIME.get(image_format.upper(), "application/octet-stream")


def _read_header_unchecked(data: bytes) -> Optional[Tuple[int, int, str]]:
    """
    Read the header with the registered format plugins directly.

    Image.open refuses images above Image.MAX_IMAGE_PIXELS before the size
    can be inspected; the plugins themselves only parse the header.
    """
    prefix = data[:16]
    for image_format in Image.ID:
        factory, accept = Image.OPEN[image_format]
        if accept and not accept(prefix):
            continue
        try:
            img = factory(io.BytesIO(data))
        except _DECODE_ERRORS + (IndexError, TypeError, struct.error):
            continue
        with img:
            return img.width, img.height, str(img.format)
    return None


def decode_dimensions(data: bytes) -> Tuple[int, int, str]:
    """
    Read width, height and format from the image header.

    Pixel data is not decoded.

    Raises:
        ImageValidationError: if the bytes are not a recognised image.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.width, img.height, str(img.format)
    except Image.DecompressionBombError as e:
        # Over Pillow's pixel limit, which can never be the display size
        header = _read_header_unchecked(data)
        if header is not None:
            return header
        raise ImageValidationError(
            ValidationErrorKind.SIZE_MISMATCH, f"bad image size: {e}"
        ) from e
    except _DECODE_ERRORS as e:
        logger.debug(f"Unable to read image header: {e}")
        raise ImageValidationError(
            ValidationErrorKind.UNDECODABLE, "undecodable image"
        ) from e


def decode_full(data: bytes) -> Image.Image:
    """Decode every pixel of the image into an RGB bitmap."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return img.convert("RGB")
    except _DECODE_ERRORS as e:
        logger.error(f"Unable to decode image: {e}")
        raise ImageValidationError(
            ValidationErrorKind.UNDECODABLE, "undecodable image"
        ) from e


def encode_paletted(img: Image.Image) -> bytes:
    """Map every pixel to the nearest palette colour and encode as PNG."""
    paletted = img.quantize(palette=create_palette_image(), dither=Image.Dither.NONE)
    buf = io.BytesIO()
    paletted.save(buf, format="PNG")
    return buf.getvalue()


def convert(data: bytes, perform_conversion: bool = True) -> Tuple[bytes, str]:
    """
    Validate an uploaded image and optionally convert it to the display palette.

    Args:
        data: The encoded image as uploaded.
        perform_conversion: Re-encode against the fixed palette. When False the
            bytes are returned unchanged once the size check passes.

    Returns:
        Tuple of (image bytes, content type)

    Raises:
        ImageValidationError: UNDECODABLE or SIZE_MISMATCH.
    """
    width, height, image_format = decode_dimensions(data)
    if (width, height) != TARGET_SIZE:
        size = f"{width}x{height}"
        logger.error(f"Bad image size: {size} (problem=incorrect-size)")
        raise ImageValidationError(
            ValidationErrorKind.SIZE_MISMATCH, f"bad image size: {size}"
        )
    logger.info(f"Decoded image OK (format={image_format})")

    if not perform_conversion:
        return data, mime_type_for(image_format)

    logger.debug("Converting image to target palette")
    return encode_paletted(decode_full(data)), PALETTE_MIME_TYPE
