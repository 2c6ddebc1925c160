import base64
import binascii
import os
from datetime import datetime
from uuid import uuid4
from civic_api.config.settings import settings

_SIGNATURES = (
    (b"\xff\xd8\xff", ".jpg"),
    (b"\x89PNG\r\n\x1a\n", ".png"),
    (b"GIF87a", ".gif"),
    (b"GIF89a", ".gif"),
    (b"BM", ".bmp"),
)


class InvalidImageError(ValueError):
    pass


def strip_data_url(payload: str | None) -> str:
    value = (payload or "").strip()
    if value.startswith("data:") and "," in value:
        return value.split(",", 1)[1].strip()
    return value


def media_kind(payload: str) -> str:
    return "video" if payload.strip().startswith("data:video") else "image"


def _guess_extension(raw: bytes) -> str:
    for signature, extension in _SIGNATURES:
        if raw.startswith(signature):
            return extension
    if raw.startswith(b"RIFF") and b"WEBP" in raw[:16]:
        return ".webp"
    raise InvalidImageError("Unsupported image format")


def save_image(image_base64):

    encoded = strip_data_url(image_base64)
    if not encoded:
        raise InvalidImageError("Empty image payload")
    if settings.MAX_IMAGE_BASE64_LENGTH > 0 and len(encoded) > settings.MAX_IMAGE_BASE64_LENGTH:
        raise InvalidImageError("Image payload is too large")

    try:
        image_bytes = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageError("Invalid base64 image data") from exc
    extension = _guess_extension(image_bytes)

    if not os.path.exists(settings.IMAGE_DIR):
        os.makedirs(settings.IMAGE_DIR)

    filename = f"{datetime.utcnow().strftime('%Y%m%d_%H%M%S_%f')}_{uuid4().hex[:8]}{extension}"
    path = os.path.join(settings.IMAGE_DIR, filename)

    with open(path, "wb") as f:
        f.write(image_bytes)

    return f"/images/{filename}"
