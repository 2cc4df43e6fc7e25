from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from giftscart.config import Config
from giftscart.errors import ValidationError
from giftscart.geo import nearest_within, within_own_radius
from giftscart.models import City, ServiceArea, Vendor, VendorPincode, VendorProduct, VendorStatus
from giftscart.observability import increment_counter
from giftscart.services.pincode_service import PINCODE_PATTERN
from giftscart.services.slot_cutoff_service import SlotCutoffService

MSG_NOT_DELIVERED = "Sorry, we do not deliver to this pincode yet."
MSG_NOT_SERVED = "We don't serve this area yet. We're expanding soon!"
MSG_COMING_SOON = "We're coming to your area soon!"


def _coerce_coordinate(value: Any, name: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number")
    return float(value)


def _not_serviceable(message: str, **extra: Any) -> Dict[str, Any]:
    data = {
        "isServiceable": False,
        "serviceable": False,
        "message": message,
        "vendorCount": 0,
        "deliveryCharge": 0,
        "availableSlots": [],
        "freeDeliveryAbove": 0,
    }
    data.update(extra)
    return data


class ServiceabilityService:
    """
    Answers "can we deliver here?" for a pincode and/or coordinates by
    matching vendors on pincode coverage and on their delivery radius.
    """

    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.slots = SlotCutoffService(db_session)
        self.logger = logging.getLogger(__name__)

    def check(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        pincode = payload.get("pincode")
        if pincode is not None:
            if not isinstance(pincode, str) or not PINCODE_PATTERN.match(pincode):
                raise ValidationError("Invalid pincode (6 digits)")
        lat = _coerce_coordinate(payload.get("lat"), "lat")
        lng = _coerce_coordinate(payload.get("lng"), "lng")
        product_id = payload.get("productId")
        has_coords = lat is not None and lng is not None

        if not pincode and not has_coords:
            raise ValidationError("Either pincode or lat/lng coordinates are required")

        if pincode:
            area = (
                self.db.query(ServiceArea)
                .filter(ServiceArea.pincode == pincode, ServiceArea.is_active.is_(True))
                .first()
            )
            if area is not None:
                result = self._full_check(area, area.lat, area.lng, product_id)
            elif has_coords:
                result = self._coordinate_check(lat, lng, product_id)
            else:
                result = _not_serviceable(MSG_NOT_DELIVERED)
        else:
            result = self._coordinate_check(lat, lng, product_id)

        increment_counter(
            "serviceability_checks_total",
            labels={"serviceable": result["isServiceable"]},
        )
        return result

    def _approved_online_vendors(self) -> List[Vendor]:
        return (
            self.db.query(Vendor)
            .filter(Vendor.status == VendorStatus.APPROVED.value, Vendor.is_online.is_(True))
            .all()
        )

    def _pincode_vendor_ids(self, pincode: str) -> List[int]:
        rows = (
            self.db.query(VendorPincode.vendorID)
            .join(Vendor, Vendor.vendorID == VendorPincode.vendorID)
            .filter(
                VendorPincode.pincode == pincode,
                VendorPincode.is_active.is_(True),
                Vendor.status == VendorStatus.APPROVED.value,
                Vendor.is_online.is_(True),
            )
            .all()
        )
        return [vendor_id for (vendor_id,) in rows]

    def _radius_vendor_ids(self, lat: Optional[float], lng: Optional[float]) -> List[int]:
        if lat is None or lng is None:
            return []
        return [vendor.vendorID for vendor in within_own_radius(lat, lng, self._approved_online_vendors())]

    def _product_available(self, product_id: Any, vendor_ids: Sequence[int]) -> bool:
        if product_id is None:
            return True
        try:
            product_id = int(product_id)
        except (TypeError, ValueError):
            return False
        return (
            self.db.query(VendorProduct.vendorProductID)
            .filter(
                VendorProduct.productID == product_id,
                VendorProduct.is_available.is_(True),
                VendorProduct.vendorID.in_(list(vendor_ids)),
            )
            .first()
            is not None
        )

    def _serviceable(self, city: City, area_name: Optional[str], vendor_ids: Sequence[int], product_id: Any):
        slots = self.slots.available_slot_list(city.cityID)
        return {
            "isServiceable": True,
            "serviceable": True,
            "city": city.to_dict(),
            "areaName": area_name,
            "vendorCount": len(vendor_ids),
            "productAvailable": self._product_available(product_id, vendor_ids),
            "deliveryCharge": float(city.base_delivery_charge or 0),
            "freeDeliveryAbove": float(city.free_delivery_above or 0),
            "availableSlots": slots,
            "deliverySlots": slots,
        }

    def _full_check(
        self, area: ServiceArea, lat: Optional[float], lng: Optional[float], product_id: Any
    ) -> Dict[str, Any]:
        vendor_ids: List[int] = []
        for vendor_id in self._pincode_vendor_ids(area.pincode) + self._radius_vendor_ids(lat, lng):
            if vendor_id not in vendor_ids:
                vendor_ids.append(vendor_id)

        city = self.db.query(City).filter_by(cityID=area.cityID).first()
        if not vendor_ids or city is None:
            return _not_serviceable(
                MSG_COMING_SOON,
                comingSoon=True,
                cityName=city.name if city else area.city_name,
                cityId=area.cityID,
                areaName=area.name,
            )
        return self._serviceable(city, area.name, vendor_ids, product_id)

    def _coordinate_check(self, lat: float, lng: float, product_id: Any) -> Dict[str, Any]:
        areas = (
            self.db.query(ServiceArea)
            .filter(
                ServiceArea.is_active.is_(True),
                ServiceArea.lat.isnot(None),
                ServiceArea.lng.isnot(None),
            )
            .all()
        )
        nearest = nearest_within(lat, lng, areas, Config.SERVICE_AREA_SEARCH_RADIUS_KM)
        if nearest is not None:
            area, distance = nearest
            self.logger.debug("Nearest service area %s is %.2f km away", area.pincode, distance)
            # Radius matching uses the caller's point, not the area centre
            return self._full_check(area, lat, lng, product_id)

        vendors = within_own_radius(lat, lng, self._approved_online_vendors())
        if not vendors:
            return _not_serviceable(MSG_NOT_SERVED)

        city = self.db.query(City).filter_by(cityID=vendors[0].cityID).first()
        return self._serviceable(city, None, [vendor.vendorID for vendor in vendors], product_id)
