"""
Geolocation payload normaliser.

Turns whatever the client sent as ``location`` into a bounded, storable
dict, or ``None`` when the coordinates are unusable. Never raises.
"""

from __future__ import annotations

import math
from typing import Any

from hrms.core.timeutils import iso, parse_instant

SOURCE_MAX_LENGTH = 32

# field -> max length
ADDRESS_FIELDS = {
    "label": 512,
    "road": 128,
    "city": 128,
    "state": 128,
    "postcode": 32,
    "country": 128,
}


def _as_finite(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _clip(value: Any, max_length: int) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value[:max_length] if value else None


def normalize_address(address: Any) -> dict[str, str] | None:
    if not isinstance(address, dict):
        return None
    cleaned = {}
    for field, max_length in ADDRESS_FIELDS.items():
        value = _clip(address.get(field), max_length)
        if value is not None:
            cleaned[field] = value
    return cleaned or None


def normalize_location(location: Any) -> dict[str, Any] | None:
    """Validate and clamp a raw location payload.

    ``latitude``/``longitude`` must be finite numbers (numeric strings are
    accepted). ``accuracy`` is kept only if finite, ``capturedAt`` only if
    it parses to an instant (stored as an ISO-8601 UTC string), ``source``
    is trimmed to 32 characters, and address fields are trimmed and capped
    individually. Empty fields are omitted rather than stored as blanks.
    """
    if not isinstance(location, dict):
        return None

    latitude = _as_finite(location.get("latitude"))
    longitude = _as_finite(location.get("longitude"))
    if latitude is None or longitude is None:
        return None

    normalized: dict[str, Any] = {"latitude": latitude, "longitude": longitude}

    accuracy = _as_finite(location.get("accuracy"))
    if accuracy is not None:
        normalized["accuracy"] = accuracy

    captured_at = parse_instant(location.get("capturedAt"))
    if captured_at is not None:
        normalized["capturedAt"] = iso(captured_at)

    source = _clip(location.get("source"), SOURCE_MAX_LENGTH)
    if source is not None:
        normalized["source"] = source

    address = normalize_address(location.get("address"))
    if address is not None:
        normalized["address"] = address

    return normalized
