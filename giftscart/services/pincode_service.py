from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

import requests
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from giftscart.errors import ValidationError
from giftscart.models import City, ServiceArea, Vendor, VendorPincode, VendorStatus
from giftscart.observability import increment_counter
from giftscart.services.geocoding import GeocodedPincode, NominatimClient

PINCODE_PATTERN = re.compile(r"^\d{6}$")

SOURCE_DATABASE = "database"
SOURCE_NOT_FOUND = "not_found"
SOURCE_NOMINATIM = "nominatim"
SOURCE_UNKNOWN_CITY = "nominatim_unknown_city"


def validate_pincode(pincode: Optional[str]) -> str:
    pincode = (pincode or "").strip()
    if not PINCODE_PATTERN.match(pincode):
        raise ValidationError("Valid 6-digit pincode required")
    return pincode


def _slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


class PincodeService:
    """
    Resolves a pincode to a city: known service areas first, then the
    geocoder. Geocoded pincodes in a known city are stored as inactive service
    areas so an admin can review and enable them.
    """

    def __init__(self, db_session: Session, geocoder: Optional[NominatimClient] = None) -> None:
        self.db = db_session
        self.geocoder = geocoder or NominatimClient()
        self.logger = logging.getLogger(__name__)

    def vendor_count(self, pincode: str) -> int:
        return (
            self.db.query(func.count(VendorPincode.vendorPincodeID))
            .join(Vendor, Vendor.vendorID == VendorPincode.vendorID)
            .filter(
                VendorPincode.pincode == pincode,
                VendorPincode.is_active.is_(True),
                Vendor.status == VendorStatus.APPROVED.value,
            )
            .scalar()
            or 0
        )

    def active_area(self, pincode: str) -> Optional[ServiceArea]:
        return (
            self.db.query(ServiceArea)
            .filter(ServiceArea.pincode == pincode, ServiceArea.is_active.is_(True))
            .first()
        )

    def match_city(self, city_name: str) -> Optional[City]:
        """Known city whose name contains ``city_name`` or whose slug equals its slug form."""
        if not city_name or not city_name.strip():
            return None
        needle = city_name.strip().lower()
        return (
            self.db.query(City)
            .filter(
                or_(
                    func.lower(City.name).contains(needle, autoescape=True),
                    City.slug == _slugify(city_name),
                )
            )
            .order_by(City.cityID)
            .first()
        )

    def resolve(self, pincode: str) -> Dict[str, Any]:
        pincode = validate_pincode(pincode)

        area = self.active_area(pincode)
        if area is not None:
            vendor_count = self.vendor_count(pincode)
            increment_counter("pincode_lookups_total", labels={"source": SOURCE_DATABASE})
            return {
                "pincode": pincode,
                "found": True,
                "isServiceable": True,
                "hasVendor": vendor_count > 0,
                "cityId": area.cityID,
                "cityName": area.city_name,
                "state": area.state,
                "areaName": area.name,
                "vendorCount": vendor_count,
                "source": SOURCE_DATABASE,
            }

        # Transport errors propagate to the request handler
        geocoded = self.geocoder.lookup_pincode(pincode)
        if geocoded is None:
            increment_counter("pincode_lookups_total", labels={"source": SOURCE_NOT_FOUND})
            return {
                "pincode": pincode,
                "found": False,
                "isServiceable": False,
                "cityId": None,
                "cityName": None,
                "state": None,
                "vendorCount": 0,
                "source": SOURCE_NOT_FOUND,
            }

        city = self.match_city(geocoded.city)
        if city is not None:
            self._store_pending_area(geocoded, city)
            increment_counter("pincode_lookups_total", labels={"source": SOURCE_NOMINATIM})
            return {
                "pincode": pincode,
                "found": True,
                "isServiceable": True,
                "hasVendor": False,
                "cityId": city.cityID,
                "cityName": city.name,
                "state": geocoded.state,
                "areaName": geocoded.area_name,
                "vendorCount": 0,
                "source": SOURCE_NOMINATIM,
                "pendingReview": True,
            }

        increment_counter("pincode_lookups_total", labels={"source": SOURCE_UNKNOWN_CITY})
        return {
            "pincode": pincode,
            "found": True,
            "isServiceable": False,
            "hasVendor": False,
            "cityId": None,
            "cityName": geocoded.city or None,
            "state": geocoded.state,
            "areaName": geocoded.area_name,
            "vendorCount": 0,
            "source": SOURCE_UNKNOWN_CITY,
        }

    def _store_pending_area(self, geocoded: GeocodedPincode, city: City) -> None:
        area = ServiceArea(
            pincode=geocoded.pincode,
            name=geocoded.area_name or f"Area {geocoded.pincode}",
            cityID=city.cityID,
            city_name=city.name,
            state=geocoded.state,
            lat=geocoded.lat,
            lng=geocoded.lng,
            is_active=False,
        )
        try:
            self.db.add(area)
            self.db.commit()
            self.logger.info("Queued pincode %s in %s for review", geocoded.pincode, city.name)
        except IntegrityError:
            # Already stored by an earlier or concurrent lookup
            self.db.rollback()

    def ensure_service_areas(self, pincodes: Iterable[str], vendor_city_id: int) -> Dict[str, Any]:
        """
        Create active service areas for the given pincodes that have none yet.
        Pincodes the geocoder cannot place fall back to the vendor's city.
        """
        wanted: List[str] = []
        for pincode in pincodes:
            pincode = (pincode or "").strip()
            if PINCODE_PATTERN.match(pincode) and pincode not in wanted:
                wanted.append(pincode)
        if not wanted:
            return {"created": 0, "failed": []}

        existing = {
            pincode
            for (pincode,) in self.db.query(ServiceArea.pincode).filter(ServiceArea.pincode.in_(wanted))
        }
        missing = [pincode for pincode in wanted if pincode not in existing]
        if not missing:
            return {"created": 0, "failed": []}

        city = self.db.query(City).filter_by(cityID=vendor_city_id).first()

        created = 0
        failed: List[str] = []
        for pincode in missing:
            try:
                geocoded = self.geocoder.lookup_pincode(pincode)
            except requests.RequestException as exc:
                self.logger.warning("Geocoding %s failed, using vendor city: %s", pincode, exc)
                geocoded = None

            matched = self.match_city(geocoded.city) if geocoded else None
            target = matched or city
            area = ServiceArea(
                pincode=pincode,
                name=(geocoded.area_name if geocoded else None) or pincode,
                cityID=target.cityID if target else vendor_city_id,
                city_name=(target.name if target else None) or (geocoded.city if geocoded else ""),
                state=(geocoded.state if geocoded else None) or (city.state if city else ""),
                lat=geocoded.lat if geocoded else None,
                lng=geocoded.lng if geocoded else None,
                is_active=True,
            )
            try:
                self.db.add(area)
                self.db.commit()
                created += 1
            except IntegrityError as exc:
                self.db.rollback()
                self.logger.error("Failed to create service area for %s: %s", pincode, exc)
                failed.append(pincode)

        return {"created": created, "failed": failed}
