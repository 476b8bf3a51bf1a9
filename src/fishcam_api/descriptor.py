"""
Content-addressed upload descriptors for captured images.

The image is re-encoded (PNG first, JPEG at full quality as fallback) and the
descriptor describes exactly the encoded bytes: their length and the base64 of
their MD5 digest. The MD5 is a content-integrity check agreed with the
provider, not a security signature.
"""

from __future__ import annotations

import base64
import hashlib
import io
import logging
import uuid
from typing import Callable

from PIL import Image, UnidentifiedImageError

from .errors import UnrecognizedFormat
from .models import IdentificationRequest, UploadDescriptor

logger = logging.getLogger(__name__)

JPEG_QUALITY = 100


def checksum_for(data: bytes) -> str:
    """
    Base64-encoded MD5 digest of ``data``.

    Examples:
        >>> checksum_for(b"")
        '1B2M2Y8AsgTpgAmY7PhCfg=='
    """
    return base64.b64encode(hashlib.md5(data, usedforsecurity=False).digest()).decode("ascii")


def descriptor_for_bytes(data: bytes, content_type: str, filename: str) -> UploadDescriptor:
    """Describe already-encoded image bytes."""
    return UploadDescriptor(
        filename=filename,
        content_type=content_type,
        byte_size=len(data),
        checksum=checksum_for(data),
    )


def _encode_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def _encode_jpeg(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="JPEG", quality=JPEG_QUALITY)
    return buf.getvalue()


# Priority order: lossless first
ENCODINGS: tuple[tuple[str, str, Callable[[Image.Image], bytes]], ...] = (
    ("image/png", ".png", _encode_png),
    ("image/jpeg", ".jpg", _encode_jpeg),
)


def _open_image(blob: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(blob))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.info("Image blob could not be decoded: %s", e)
        raise UnrecognizedFormat() from e
    return image


def encode_image(image: Image.Image) -> tuple[bytes, str, str]:
    """
    Encode ``image`` with the first encoding that succeeds.

    Returns:
        (encoded bytes, content type, filename extension)

    Raises:
        UnrecognizedFormat: If no encoding could be produced
    """
    for content_type, extension, encode in ENCODINGS:
        try:
            data = encode(image)
        except (OSError, ValueError, KeyError) as e:
            logger.debug("Encoding as %s failed: %s", content_type, e)
            continue
        if data:
            return data, content_type, extension
    raise UnrecognizedFormat()


def create_identification_request(image: bytes | Image.Image) -> IdentificationRequest:
    """
    Build an identification request from a captured image.

    Args:
        image: Raw image blob or an already-decoded Pillow image

    Returns:
        IdentificationRequest holding a fresh id, the descriptor and the
        encoded bytes the descriptor covers

    Raises:
        UnrecognizedFormat: If the image can't be decoded or encoded
    """
    if isinstance(image, (bytes, bytearray)):
        image = _open_image(bytes(image))

    data, content_type, extension = encode_image(image)
    descriptor = descriptor_for_bytes(
        data,
        content_type=content_type,
        filename=f"{uuid.uuid4()}{extension}",
    )
    logger.debug(
        "Built descriptor %s (%s, %d bytes)",
        descriptor.filename, descriptor.content_type, descriptor.byte_size,
    )
    return IdentificationRequest(id=str(uuid.uuid4()), descriptor=descriptor, data=data)
