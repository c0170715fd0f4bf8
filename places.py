# places.py
import logging

import requests

from errors import PlacesError

logger = logging.getLogger("wastetrack.places")

AUTOCOMPLETE_URL = "https://maps.googleapis.com/maps/api/place/autocomplete/json"


def autocomplete(query: str, api_key: str, timeout: int = 10, session=None) -> list[str]:
    """Place suggestions for a partially typed location."""
    query = (query or "").strip()
    if not query:
        return []
    if not api_key:
        raise PlacesError("Place search is not configured")
    http = session or requests
    try:
        r = http.get(AUTOCOMPLETE_URL, params={"input": query, "key": api_key}, timeout=timeout)
        r.raise_for_status()
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        logger.error("place autocomplete failed: %s", e)
        raise PlacesError("Place search failed") from e

    status = data.get("status", "")
    if status not in ("OK", "ZERO_RESULTS"):
        logger.error("place autocomplete status %s: %s", status, data.get("error_message", ""))
        raise PlacesError(f"Place search failed ({status})")
    return [p.get("description", "") for p in data.get("predictions", []) if p.get("description")]
