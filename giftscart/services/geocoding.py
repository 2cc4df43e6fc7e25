"""
Nominatim (OpenStreetMap) client.

Nominatim's usage policy requires an identifying User-Agent and allows about
one request per second, so calls are single-shot with a short timeout.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from giftscart.config import Config
from giftscart.observability import increment_counter, timed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeocodedPincode:
    pincode: str
    area_name: str
    lat: float
    lng: float
    city: str
    state: str


class NominatimClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or Config.NOMINATIM_BASE_URL).rstrip("/")
        self.user_agent = user_agent or Config.NOMINATIM_USER_AGENT
        self.timeout = timeout if timeout is not None else Config.NOMINATIM_TIMEOUT_SECONDS
        self.http = session or requests

    def _get(self, path: str, params: Dict[str, Any]) -> Optional[Any]:
        """
        GET a Nominatim endpoint. Non-200 answers are logged and return None;
        transport errors (timeouts, DNS, resets) raise ``requests.RequestException``.
        """
        with timed("geocoder_request_seconds", labels={"endpoint": path}):
            try:
                response = self.http.get(
                    f"{self.base_url}/{path}",
                    params=params,
                    headers={"User-Agent": self.user_agent},
                    timeout=self.timeout,
                )
            except requests.RequestException:
                increment_counter("geocoder_requests_total", labels={"endpoint": path, "outcome": "error"})
                raise

        if response.status_code != 200:
            increment_counter("geocoder_requests_total", labels={"endpoint": path, "outcome": "http_error"})
            logger.warning("Nominatim %s answered %s", path, response.status_code)
            return None

        increment_counter("geocoder_requests_total", labels={"endpoint": path, "outcome": "ok"})
        return response.json()

    def lookup_pincode(self, pincode: str) -> Optional[GeocodedPincode]:
        """First Nominatim hit for an Indian postal code, or None."""
        results = self._get(
            "search",
            {
                "postalcode": pincode,
                "country": "India",
                "format": "json",
                "limit": 1,
                "addressdetails": 1,
            },
        )
        if not results:
            return None

        hit = results[0]
        address = hit.get("address") or {}
        try:
            lat = float(hit["lat"])
            lng = float(hit["lon"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Nominatim hit for %s has no usable coordinates", pincode)
            return None

        return GeocodedPincode(
            pincode=pincode,
            area_name=address.get("suburb")
            or address.get("city_district")
            or address.get("town")
            or address.get("village")
            or pincode,
            lat=lat,
            lng=lng,
            city=address.get("city") or address.get("town") or address.get("state_district") or "",
            state=address.get("state") or "",
        )
