"""
GPS geotagging for captured photos.

Coordinates are written into the EXIF GPS IFD as degree/minute/second
rationals, seconds carried with a fixed denominator of 100. Embedding is
best-effort: a photo that cannot carry EXIF is passed through untouched.
"""

from __future__ import annotations

import io
import logging
from dataclasses import replace
from fractions import Fraction

import piexif

from civic_reporter.errors import MetadataEmbedFailure
from civic_reporter.models import CapturedMedia, GeoPosition

LOGGER = logging.getLogger(__name__)

SECONDS_SCALE = 100
EXIF_MIME_TYPES = {"image/jpeg", "image/webp"}


def to_dms_rationals(value: float) -> tuple[tuple[int, int], tuple[int, int], tuple[int, int]]:
    """Convert an absolute decimal coordinate into EXIF DMS rationals."""
    value = abs(float(value))
    degrees = int(value)
    minutes_full = (value - degrees) * 60
    minutes = int(minutes_full)
    seconds = int(round((minutes_full - minutes) * 60 * SECONDS_SCALE))
    if seconds >= 60 * SECONDS_SCALE:
        seconds -= 60 * SECONDS_SCALE
        minutes += 1
    if minutes >= 60:
        minutes -= 60
        degrees += 1
    return (degrees, 1), (minutes, 1), (seconds, SECONDS_SCALE)


def from_dms_rationals(dms, ref) -> float | None:
    if not dms or not ref:
        return None
    try:
        decimal = sum(Fraction(num, den) / (60 ** index) for index, (num, den) in enumerate(dms))
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    value = float(decimal)
    return -value if ref.strip("\x00") in ("S", "W") else value


def build_gps_ifd(position: GeoPosition) -> dict:
    return {
        piexif.GPSIFD.GPSVersionID: (2, 2, 0, 0),
        piexif.GPSIFD.GPSLatitudeRef: b"N" if position.latitude >= 0 else b"S",
        piexif.GPSIFD.GPSLatitude: to_dms_rationals(position.latitude),
        piexif.GPSIFD.GPSLongitudeRef: b"E" if position.longitude >= 0 else b"W",
        piexif.GPSIFD.GPSLongitude: to_dms_rationals(position.longitude),
    }


def _embed(image: CapturedMedia, position: GeoPosition) -> bytes:
    if image.mime_type not in EXIF_MIME_TYPES:
        raise MetadataEmbedFailure(f"{image.mime_type} cannot carry EXIF")
    try:
        exif_dict = piexif.load(image.data)
        exif_dict["GPS"] = build_gps_ifd(position)
        exif_bytes = piexif.dump(exif_dict)
        output = io.BytesIO()
        piexif.insert(exif_bytes, image.data, output)
    except Exception as exc:
        raise MetadataEmbedFailure(str(exc)) from exc
    return output.getvalue()


def embed(image: CapturedMedia, position: GeoPosition) -> CapturedMedia:
    try:
        data = _embed(image, position)
    except MetadataEmbedFailure as exc:
        LOGGER.warning("Geotag skipped, keeping original image: %s", exc)
        return image
    return replace(image, data=data, position=position)


def read_position(image: CapturedMedia | bytes) -> GeoPosition | None:
    data = image.data if isinstance(image, CapturedMedia) else image
    try:
        gps = piexif.load(data).get("GPS") or {}
    except Exception as exc:
        LOGGER.debug("No readable EXIF in image: %s", exc)
        return None
    latitude = from_dms_rationals(gps.get(piexif.GPSIFD.GPSLatitude), gps.get(piexif.GPSIFD.GPSLatitudeRef))
    longitude = from_dms_rationals(gps.get(piexif.GPSIFD.GPSLongitude), gps.get(piexif.GPSIFD.GPSLongitudeRef))
    if latitude is None or longitude is None:
        return None
    return GeoPosition(latitude, longitude)
