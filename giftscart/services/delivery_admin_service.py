from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

import bleach
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from giftscart.database import is_unique_violation
from giftscart.models import City, CityDeliveryConfig, DeliveryHoliday, DeliverySlot, HolidayMode
from giftscart.timeutils import parse_date, parse_hhmm


def _clean(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return bleach.clean(value, tags=[], strip=True).strip()


def _money(value: Any) -> Optional[Decimal]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    return amount if amount >= 0 else None


class DeliveryAdminService:
    """Admin maintenance of slots, holidays and per-city delivery configuration."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    def list_slots(self) -> List[DeliverySlot]:
        return self.db.query(DeliverySlot).order_by(DeliverySlot.start_time.asc()).all()

    def update_slot(self, slot_id: int, payload: Dict[str, Any]) -> Tuple[bool, str, Optional[DeliverySlot]]:
        slot = self.db.query(DeliverySlot).filter_by(slotID=slot_id).first()
        if not slot:
            return False, "Delivery slot not found", None

        if "name" in payload:
            name = _clean(payload.get("name"))
            if not name:
                return False, "Name cannot be empty", None
            slot.name = name
        for key, column in (("startTime", "start_time"), ("endTime", "end_time")):
            if key in payload:
                value = payload.get(key)
                if not isinstance(value, str) or parse_hhmm(value) is None:
                    return False, f"{key} must be HH:MM", None
                setattr(slot, column, value)
        if "baseCharge" in payload:
            charge = _money(payload.get("baseCharge"))
            if charge is None:
                return False, "baseCharge must be a non-negative number", None
            slot.base_charge = charge
        if "isActive" in payload:
            if not isinstance(payload.get("isActive"), bool):
                return False, "isActive must be true or false", None
            slot.is_active = payload.get("isActive")

        try:
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error updating slot {slot_id}: {e}")
            return False, "Failed to update delivery slot", None

        self.logger.info(f"Updated delivery slot {slot.slug}")
        return True, "Delivery slot updated", slot

    # ------------------------------------------------------------------
    # Holidays
    # ------------------------------------------------------------------

    def list_holidays(
        self, city_id: Optional[int] = None, upcoming_from: Optional[date] = None
    ) -> List[DeliveryHoliday]:
        query = self.db.query(DeliveryHoliday).options(joinedload(DeliveryHoliday.city))
        if city_id is not None:
            query = query.filter(DeliveryHoliday.cityID == city_id)
        if upcoming_from is not None:
            query = query.filter(DeliveryHoliday.date >= upcoming_from)
        return query.order_by(DeliveryHoliday.date.asc()).all()

    def create_holiday(self, payload: Dict[str, Any]) -> Tuple[bool, str, Optional[DeliveryHoliday]]:
        holiday_date = parse_date(payload.get("date"))
        reason = _clean(payload.get("reason"))
        if holiday_date is None or not reason:
            return False, "Date and reason are required", None

        blocked = payload.get("blockedSlots") or []
        if not isinstance(blocked, list) or not all(isinstance(s, str) for s in blocked):
            return False, "blockedSlots must be a list of slot slugs", None

        if payload.get("mode") == HolidayMode.STANDARD_ONLY.value:
            mode, overrides = HolidayMode.STANDARD_ONLY.value, None
        elif blocked:
            mode = HolidayMode.CUSTOM.value
            overrides = [{"slug": slug, "blocked": True, "priceOverride": None} for slug in blocked]
        else:
            mode, overrides = HolidayMode.FULL_BLOCK.value, None

        holiday = DeliveryHoliday(
            date=holiday_date,
            cityID=payload.get("cityId") or None,
            reason=reason,
            customer_message=_clean(payload.get("customerMessage")) or None,
            mode=mode,
            slot_overrides=overrides,
        )
        try:
            self.db.add(holiday)
            self.db.commit()
            self.db.refresh(holiday)
        except IntegrityError as e:
            self.db.rollback()
            if is_unique_violation(e):
                return False, "A holiday already exists for this date", None
            self.logger.error(f"Error creating holiday: {e}")
            return False, "Failed to create holiday", None

        self.logger.info(f"Created {mode} holiday on {holiday_date} ({reason})")
        return True, "Holiday created", holiday

    def delete_holiday(self, holiday_id: int) -> Tuple[bool, str]:
        holiday = self.db.query(DeliveryHoliday).filter_by(holidayID=holiday_id).first()
        if not holiday:
            return False, "Holiday not found"
        self.db.delete(holiday)
        self.db.commit()
        return True, "Holiday deleted"

    # ------------------------------------------------------------------
    # City delivery configuration
    # ------------------------------------------------------------------

    def update_city_config(self, city_id: int, payload: Dict[str, Any]) -> Tuple[bool, str]:
        """Update city-level charges and upsert per-slot availability/charge overrides."""
        city = self.db.query(City).filter_by(cityID=city_id).first()
        if not city:
            return False, "City not found"

        for key, column in (("baseDeliveryCharge", "base_delivery_charge"), ("freeDeliveryAbove", "free_delivery_above")):
            if key in payload:
                amount = _money(payload.get(key))
                if amount is None:
                    return False, f"{key} must be a non-negative number"
                setattr(city, column, amount)

        slots = payload.get("slots")
        if slots is not None and not isinstance(slots, list):
            return False, "slots must be a list"

        existing = {
            config.slotID: config
            for config in self.db.query(CityDeliveryConfig).filter(CityDeliveryConfig.cityID == city_id)
        }
        for entry in slots or []:
            slot_id = entry.get("slotId") if isinstance(entry, dict) else None
            if not isinstance(slot_id, int) or isinstance(slot_id, bool):
                self.db.rollback()
                return False, "Each slot entry needs an integer slotId"
            is_available = entry.get("isAvailable", True)
            if not isinstance(is_available, bool):
                self.db.rollback()
                return False, "isAvailable must be true or false"
            config = existing.get(slot_id)
            if config is None:
                config = CityDeliveryConfig(cityID=city_id, slotID=slot_id)
                self.db.add(config)
                existing[slot_id] = config
            config.is_available = is_available
            config.charge_override = _money(entry.get("chargeOverride"))

        try:
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error updating delivery config for city {city_id}: {e}")
            return False, "Failed to update city config"

        return True, "City delivery configuration updated"
