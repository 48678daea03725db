"""Forward and reverse geocoding through the public Nominatim service.

Both lookups are best effort: transport or decoding failures degrade to an
empty result instead of raising.
"""

from __future__ import annotations

from typing import Any, Hashable

import requests
from flask import current_app

from ..extensions import cache
from ..utils.generation import RequestGeneration
from ..utils.logger import get_logger

logger = get_logger(__name__)

SEARCH_LIMIT = 5
REVERSE_CACHE_SECONDS = 60 * 60 * 24

# Form fields that issue type-ahead lookups; each keeps its own token per user.
LOOKUP_PURPOSES = frozenset({"event-form", "activity-form", "profile-form"})

geocoding_generation = RequestGeneration("geocoding")


def _headers() -> dict[str, str]:
    return {
        "User-Agent": current_app.config.get("NOMINATIM_USER_AGENT", "EcoTrack/1.0"),
        "Accept-Language": "en",
    }


def _base_url() -> str:
    return current_app.config.get("NOMINATIM_URL", "https://nominatim.openstreetmap.org").rstrip("/")


def search(query: str, limit: int = SEARCH_LIMIT) -> list[dict[str, Any]]:
    query = (query or "").strip()
    if not query:
        return []
    try:
        response = requests.get(
            f"{_base_url()}/search",
            params={"format": "json", "q": query, "limit": limit},
            headers=_headers(),
            timeout=current_app.config.get("GEOCODING_TIMEOUT", 8.0),
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("[GEO] search failed for %r: %s", query, exc)
        return []

    if not isinstance(data, list):
        return []
    results = []
    for item in data:
        if not isinstance(item, dict):
            continue
        try:
            results.append(
                {
                    "display_name": item.get("display_name", ""),
                    "lat": float(item["lat"]),
                    "lon": float(item["lon"]),
                }
            )
        except (KeyError, TypeError, ValueError):
            continue
    return results


def reverse(lat: float, lon: float) -> dict[str, str] | None:
    """Return ``{"display_name": ...}`` for a coordinate, or ``None``."""

    cache_key = f"geo-reverse:{lat:.5f}:{lon:.5f}"
    cached = cache.get(cache_key)
    if cached:
        return cached

    try:
        response = requests.get(
            f"{_base_url()}/reverse",
            params={"lat": lat, "lon": lon, "format": "json", "addressdetails": 1},
            headers=_headers(),
            timeout=current_app.config.get("GEOCODING_TIMEOUT", 8.0),
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.info("[GEO] reverse lookup failed for %s,%s: %s", lat, lon, exc)
        return None

    display_name = data.get("display_name") if isinstance(data, dict) else None
    if not display_name:
        return None
    result = {"display_name": display_name}
    cache.set(cache_key, result, timeout=REVERSE_CACHE_SECONDS)
    return result


def search_latest(purpose: Hashable, query: str) -> tuple[list[dict[str, Any]], bool]:
    """Search and report whether the result is still the newest for ``purpose``."""

    token = geocoding_generation.next(purpose)
    results = search(query)
    return results, geocoding_generation.is_current(purpose, token)


def reverse_latest(purpose: Hashable, lat: float, lon: float) -> tuple[dict[str, str] | None, bool]:
    token = geocoding_generation.next(purpose)
    result = reverse(lat, lon)
    return result, geocoding_generation.is_current(purpose, token)


__all__ = ["LOOKUP_PURPOSES", "reverse", "reverse_latest", "search", "search_latest"]
