# SPDX-License-Identifier: Apache-2.0
"""Image payload decoding for image operations.

Image operations carry either raw bytes or a ``data:`` URL. Only PNG and
JPEG are accepted; JPEG data is embedded as-is, PNG data is decoded with
Pillow and embedded as a bitmap.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

from pdf_compositor.errors import UnsupportedImageFormatError

if TYPE_CHECKING:
    from PIL import Image

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff"

DATA_URL_FORMATS: dict[str, str] = {
    "data:image/png": "png",
    "data:image/jpeg": "jpeg",
    "data:image/jpg": "jpeg",
}


@dataclass
class PreparedImage:
    """Decoded image ready to be embedded.

    Attributes:
        format: "png" or "jpeg"
        data: Raw encoded bytes
        pixel_width: Image width in pixels
        pixel_height: Image height in pixels
        bitmap_source: Decoded Pillow image (PNG only)
    """

    format: str
    data: bytes
    pixel_width: int
    pixel_height: int
    bitmap_source: Optional["Image.Image"] = None


def sniff_format(data: bytes) -> Optional[str]:
    """Detect PNG or JPEG from the magic bytes."""
    if data.startswith(PNG_SIGNATURE):
        return "png"
    if data.startswith(JPEG_SIGNATURE):
        return "jpeg"
    return None


def decode_image_data(image_data: Union[bytes, str]) -> tuple[bytes, Optional[str]]:
    """Decode an image payload.

    Args:
        image_data: Raw bytes, a base64 ``data:`` URL, or bare base64 text.

    Returns:
        (raw bytes, format declared by the data URL prefix or None)

    Raises:
        UnsupportedImageFormatError: If the payload is not valid base64.
    """
    if isinstance(image_data, (bytes, bytearray, memoryview)):
        return bytes(image_data), None

    declared: Optional[str] = None
    text = image_data.strip()
    lowered = text[:32].lower()
    for prefix, fmt in DATA_URL_FORMATS.items():
        if lowered.startswith(prefix):
            declared = fmt
            break

    payload = text.split(",", 1)[1] if "," in text else text
    try:
        return base64.b64decode(payload, validate=False), declared
    except (binascii.Error, ValueError) as exc:
        raise UnsupportedImageFormatError("Image data is not valid base64", cause=exc) from exc


def to_data_url(data: bytes) -> str:
    """Encode raw image bytes as a base64 data URL."""
    fmt = sniff_format(data) or "png"
    return f"data:image/{fmt};base64,{base64.b64encode(data).decode('ascii')}"


def prepare_image(image_data: Union[bytes, str]) -> PreparedImage:
    """Decode an image payload and check its format.

    The data URL prefix decides the format when present, otherwise the
    magic bytes do; the declared format must match the actual data.

    Raises:
        UnsupportedImageFormatError: For anything other than decodable PNG/JPEG.
    """
    from PIL import Image, UnidentifiedImageError

    raw, declared = decode_image_data(image_data)
    if not raw:
        raise UnsupportedImageFormatError("Image data is empty")

    sniffed = sniff_format(raw)
    fmt = declared or sniffed
    if fmt is None:
        raise UnsupportedImageFormatError("Unsupported image format (expected PNG or JPEG)")
    if sniffed is not None and sniffed != fmt:
        raise UnsupportedImageFormatError(
            f"Image declared as {fmt} but data is {sniffed}"
        )

    try:
        pil_image = Image.open(io.BytesIO(raw))
        pil_image.load()
    except (Image.DecompressionBombError, UnidentifiedImageError, OSError, ValueError) as exc:
        raise UnsupportedImageFormatError(f"Cannot decode {fmt} image", cause=exc) from exc

    width, height = pil_image.size
    if fmt == "jpeg":
        return PreparedImage(format=fmt, data=raw, pixel_width=width, pixel_height=height)

    if pil_image.mode not in ("RGB", "RGBA"):
        has_alpha = "A" in pil_image.getbands() or "transparency" in pil_image.info
        pil_image = pil_image.convert("RGBA" if has_alpha else "RGB")
    logger.debug("Decoded PNG image %dx%d (%s)", width, height, pil_image.mode)
    return PreparedImage(
        format=fmt,
        data=raw,
        pixel_width=width,
        pixel_height=height,
        bitmap_source=pil_image,
    )
