from __future__ import annotations

from math import atan2, cos, radians, sin, sqrt
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

EARTH_RADIUS_KM = 6371.0

INDIA = "india"
INTERNATIONAL = "international"

# Checked in order; the first header present decides the region.
COUNTRY_HEADERS: Tuple[str, ...] = ("CF-IPCountry", "X-Vercel-IP-Country", "X-Country")

T = TypeVar("T")


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    d_lat = radians(lat2 - lat1)
    d_lon = radians(lon2 - lon1)
    a = sin(d_lat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(d_lon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * atan2(sqrt(a), sqrt(1 - a))


def nearest_within(
    lat: float,
    lng: float,
    candidates: Iterable[T],
    max_km: float,
    coords=lambda item: (item.lat, item.lng),
) -> Optional[Tuple[T, float]]:
    """Closest candidate within ``max_km``; candidates without coordinates are skipped."""
    best: Optional[Tuple[T, float]] = None
    for item in candidates:
        c_lat, c_lng = coords(item)
        if c_lat is None or c_lng is None:
            continue
        distance = haversine_km(lat, lng, float(c_lat), float(c_lng))
        if distance <= max_km and (best is None or distance < best[1]):
            best = (item, distance)
    return best


def within_own_radius(lat: float, lng: float, vendors: Sequence) -> List:
    """Vendors whose delivery radius covers the point."""
    matched = []
    for vendor in vendors:
        if vendor.lat is None or vendor.lng is None:
            continue
        radius = float(vendor.delivery_radius_km or 0)
        if haversine_km(lat, lng, float(vendor.lat), float(vendor.lng)) <= radius:
            matched.append(vendor)
    return matched


def detect_country(headers: Mapping[str, str]) -> Optional[str]:
    for header in COUNTRY_HEADERS:
        value = headers.get(header)
        if value:
            return value.strip().upper()
    return None


def payment_region(headers: Mapping[str, str]) -> str:
    """India vs international; India is the default for the primary market."""
    country = detect_country(headers)
    if country is None:
        return INDIA
    return INDIA if country == "IN" else INTERNATIONAL


def region_payload(headers: Mapping[str, str]) -> dict:
    region = payment_region(headers)
    return {
        "region": region,
        "country": detect_country(headers) or "IN",
        "currency": "INR" if region == INDIA else "USD",
        "gateways": ["razorpay", "cod"] if region == INDIA else ["stripe", "paypal"],
    }
