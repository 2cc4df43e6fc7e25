"""
Per-date slot availability for checkout.

A city offers the slots enabled in its CityDeliveryConfig rows. A holiday on
the delivery date can block everything, keep only standard delivery, or
block / reprice individual slots. Same-day rules are evaluated on the IST
wall clock.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from giftscart.config import Config
from giftscart.errors import NotFoundError, ValidationError
from giftscart.models import City, CityDeliveryConfig, DeliveryHoliday, HolidayMode, VendorProduct
from giftscart.services.surcharge_service import fetch_platform_surcharges
from giftscart.timeutils import now_ist, parse_date


@dataclass(frozen=True)
class FixedWindow:
    label: str
    start: str
    end: str
    start_hour: int


FIXED_WINDOWS = (
    FixedWindow("9:00 AM - 11:00 AM", "09:00", "11:00", 9),
    FixedWindow("11:00 AM - 1:00 PM", "11:00", "13:00", 11),
    FixedWindow("1:00 PM - 3:00 PM", "13:00", "15:00", 13),
    FixedWindow("3:00 PM - 5:00 PM", "15:00", "17:00", 15),
    FixedWindow("5:00 PM - 7:00 PM", "17:00", "19:00", 17),
    FixedWindow("7:00 PM - 9:00 PM", "19:00", "21:00", 19),
)

# Fallback charges when a premium slot is configured at zero
EARLY_MORNING_CHARGE = 149
EXPRESS_CHARGE = 249
MIDNIGHT_CHARGE = 199


def fixed_window_charge(base_charge: float, start_hour: int) -> float:
    """Later windows cost more: at least 50 before 15:00, 75 until 19:00, 100 after."""
    if start_hour >= 19:
        return max(base_charge, 100)
    if start_hour >= 15:
        return max(base_charge, 75)
    return max(base_charge, 50)


def _fully_blocked(holiday: DeliveryHoliday) -> Dict[str, Any]:
    return {
        "standard": {"available": False, "charge": 0},
        "fixedWindows": [],
        "earlyMorning": {"available": False, "charge": 0, "cutoffPassed": True},
        "express": {"available": False, "charge": 0},
        "midnight": {"available": False, "charge": 0, "cutoffPassed": True},
        "surcharge": None,
        "fullyBlocked": True,
        "holidayReason": holiday.customer_message or holiday.reason,
    }


class DeliverySlotsService:
    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.logger = logging.getLogger(__name__)

    def holiday_for(self, city_id: int, delivery_date: date) -> Optional[DeliveryHoliday]:
        """City-specific holiday if one exists, otherwise a global one."""
        holidays = (
            self.db.query(DeliveryHoliday)
            .filter(
                DeliveryHoliday.date == delivery_date,
                or_(DeliveryHoliday.cityID == city_id, DeliveryHoliday.cityID.is_(None)),
            )
            .all()
        )
        holidays.sort(key=lambda h: h.cityID is None)
        return holidays[0] if holidays else None

    def max_preparation_minutes(self, product_ids: Sequence[int]) -> int:
        if not product_ids:
            return Config.DEFAULT_PREPARATION_MINUTES
        rows = (
            self.db.query(VendorProduct.preparation_minutes)
            .filter(VendorProduct.productID.in_(list(product_ids)), VendorProduct.is_available.is_(True))
            .all()
        )
        if not rows:
            return Config.DEFAULT_PREPARATION_MINUTES
        return max(minutes for (minutes,) in rows)

    def availability(
        self,
        city_id: Any,
        date_str: Optional[str],
        product_ids: Sequence[int] = (),
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        if not city_id or not date_str:
            raise ValidationError("cityId and date are required")
        delivery_date = parse_date(date_str)
        if delivery_date is None:
            raise ValidationError("date must be YYYY-MM-DD")
        try:
            city_id = int(city_id)
        except (TypeError, ValueError):
            raise ValidationError("cityId must be an integer")

        city = self.db.query(City).filter(City.cityID == city_id, City.is_active.is_(True)).first()
        if city is None:
            raise NotFoundError("City not found")

        max_prep = self.max_preparation_minutes(product_ids)

        holiday = self.holiday_for(city.cityID, delivery_date)
        if holiday is not None and holiday.mode == HolidayMode.FULL_BLOCK.value:
            self.logger.info("Deliveries blocked in city %s on %s: %s", city.cityID, delivery_date, holiday.reason)
            return _fully_blocked(holiday)

        surcharges = fetch_platform_surcharges(self.db, delivery_date, city.cityID)
        surcharge = None
        if surcharges:
            surcharge = {
                "name": ", ".join(s.name for s in surcharges),
                "amount": sum(s.amount for s in surcharges),
            }

        configs: List[CityDeliveryConfig] = (
            self.db.query(CityDeliveryConfig)
            .options(joinedload(CityDeliveryConfig.slot))
            .filter(CityDeliveryConfig.cityID == city.cityID, CityDeliveryConfig.is_available.is_(True))
            .all()
        )
        if holiday is not None and holiday.mode == HolidayMode.STANDARD_ONLY.value:
            configs = [c for c in configs if c.slot.group == "standard"]

        overrides: Dict[str, Dict[str, Any]] = {}
        if holiday is not None and holiday.mode == HolidayMode.CUSTOM.value:
            for override in holiday.slot_overrides or []:
                if isinstance(override, dict) and override.get("slug"):
                    overrides[override["slug"]] = override

        def config_for(group: str) -> Optional[CityDeliveryConfig]:
            for config in configs:
                if config.slot.group == group and config.slot.is_active:
                    if overrides.get(config.slot.slug, {}).get("blocked") is True:
                        return None
                    return config
            return None

        def charge_for(config: CityDeliveryConfig) -> float:
            override = overrides.get(config.slot.slug, {})
            if override.get("priceOverride") is not None:
                return float(override["priceOverride"])
            return config.effective_charge()

        ist = now_ist(now)
        is_today = delivery_date == ist.date()
        same_day_cutoff = ist.hour >= Config.SAME_DAY_CUTOFF_HOUR

        standard = config_for("standard")
        standard_result = {"available": True, "charge": charge_for(standard)} if standard else {
            "available": False,
            "charge": 0,
        }

        fixed_windows: List[Dict[str, Any]] = []
        fixed = config_for("fixed")
        if fixed is not None:
            base = charge_for(fixed)
            for window in FIXED_WINDOWS:
                if is_today and ist.hour >= window.start_hour:
                    continue
                fixed_windows.append(
                    {
                        "label": window.label,
                        "start": window.start,
                        "end": window.end,
                        "charge": fixed_window_charge(base, window.start_hour),
                        "available": True,
                    }
                )

        early = config_for("early-morning")
        if early is None:
            early_result = {"available": False, "charge": EARLY_MORNING_CHARGE, "cutoffPassed": True}
        else:
            # Never same-day; closes at the cutoff hour on the previous day
            cutoff_passed = is_today or (ist.date() == delivery_date - timedelta(days=1) and same_day_cutoff)
            early_result = {
                "available": not cutoff_passed,
                "charge": charge_for(early) or EARLY_MORNING_CHARGE,
                "cutoffPassed": cutoff_passed,
            }

        express = config_for("express")
        express_result = (
            {"available": True, "charge": charge_for(express) or EXPRESS_CHARGE}
            if express
            else {"available": False, "charge": EXPRESS_CHARGE}
        )

        midnight = config_for("midnight")
        if midnight is None:
            midnight_result = {"available": False, "charge": MIDNIGHT_CHARGE, "cutoffPassed": True}
        else:
            cutoff_passed = is_today and same_day_cutoff
            midnight_result = {
                "available": not cutoff_passed,
                "charge": charge_for(midnight) or MIDNIGHT_CHARGE,
                "cutoffPassed": cutoff_passed,
            }

        return {
            "standard": standard_result,
            "fixedWindows": fixed_windows,
            "earlyMorning": early_result,
            "express": express_result,
            "midnight": midnight_result,
            "surcharge": surcharge,
            "fullyBlocked": False,
            "holidayReason": None,
            "maxPreparationTime": max_prep,
        }
