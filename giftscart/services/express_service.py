from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from giftscart.config import Config
from giftscart.models import CitySlotCutoff, Product
from giftscart.observability import increment_counter
from giftscart.services.slot_cutoff_service import SlotCutoffService
from giftscart.timeutils import now_ist

EXPRESS_SLUG = "express"

NOT_AVAILABLE_IN_CITY = "not_available_in_city"
PRODUCTS_NOT_ELIGIBLE = "products_not_eligible"
TOO_LATE = "too_late"


@dataclass(frozen=True)
class ExpressEligibility:
    eligible: bool
    express_charge: float
    cutoff_hours: int
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "eligible": self.eligible,
            "expressCharge": self.express_charge,
            "cutoffHours": self.cutoff_hours,
        }
        if self.reason:
            data["reason"] = self.reason
        return data


def evaluate_express(
    cutoff: Optional[CitySlotCutoff],
    requested_ids: Sequence[Optional[int]],
    products: Sequence[Product],
    now: Optional[datetime] = None,
) -> ExpressEligibility:
    """
    Three gates, first failure wins:
    the city offers express, every product is express eligible, and the IST
    hour is still before ``24 - cutoff_hours``.
    """
    if cutoff is None or not cutoff.is_available:
        return ExpressEligibility(False, 0, 0, NOT_AVAILABLE_IN_CITY)

    express_charge = float(cutoff.base_charge or 0) or Config.DEFAULT_EXPRESS_CHARGE
    cutoff_hours = int(cutoff.cutoff_hours or 0) or Config.DEFAULT_EXPRESS_CUTOFF_HOURS

    found = {product.productID: product for product in products}
    wanted = set(requested_ids)
    if not wanted or any(pid not in found or not found[pid].is_express_eligible for pid in wanted):
        return ExpressEligibility(False, 0, cutoff_hours, PRODUCTS_NOT_ELIGIBLE)

    if now_ist(now).hour >= 24 - cutoff_hours:
        return ExpressEligibility(False, express_charge, cutoff_hours, TOO_LATE)

    return ExpressEligibility(True, express_charge, cutoff_hours)


class ExpressEligibilityService:
    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.logger = logging.getLogger(__name__)

    def check(self, city_id: int, product_ids: Sequence[Optional[int]], now: Optional[datetime] = None) -> ExpressEligibility:
        try:
            cutoff = SlotCutoffService(self.db).get_cutoff(city_id, EXPRESS_SLUG)
        except SQLAlchemyError as exc:
            self.db.rollback()
            self.logger.error("Express cutoff lookup failed for city %s: %s", city_id, exc)
            return ExpressEligibility(False, 0, 0, NOT_AVAILABLE_IN_CITY)

        products = []
        known_ids = {pid for pid in product_ids if pid is not None}
        if cutoff is not None and cutoff.is_available and known_ids:
            cutoff_hours = int(cutoff.cutoff_hours or 0) or Config.DEFAULT_EXPRESS_CUTOFF_HOURS
            try:
                products = self.db.query(Product).filter(Product.productID.in_(known_ids)).all()
            except SQLAlchemyError as exc:
                self.db.rollback()
                self.logger.error("Express product lookup failed for city %s: %s", city_id, exc)
                result = ExpressEligibility(False, 0, cutoff_hours, PRODUCTS_NOT_ELIGIBLE)
                increment_counter("express_eligibility_checks_total", labels={"outcome": result.reason})
                return result

        result = evaluate_express(cutoff, product_ids, products, now=now)
        increment_counter(
            "express_eligibility_checks_total",
            labels={"outcome": "eligible" if result.eligible else result.reason},
        )
        return result
