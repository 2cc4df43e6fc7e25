from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from giftscart.config import Config
from giftscart.models import City, CitySlotCutoff, DeliverySlot, Vendor, VendorStatus
from giftscart.observability import increment_counter, record_event, set_gauge

# Hours before a slot's window that orders must be in.
SLOT_CUTOFF_HOURS: Dict[str, int] = {
    "midnight": 6,
    "early-morning": 12,
    "express": 2,
    "fixed-slot": 4,
    "standard": 4,
}


def get_cutoff_hours(slug: str) -> int:
    return SLOT_CUTOFF_HOURS.get(slug, Config.DEFAULT_CUTOFF_HOURS)


class SlotCutoffService:
    """
    Maintains the ``CitySlotCutoff`` snapshot: for every active slot, how many
    approved vendors in a city deliver it, and whether the city offers it.
    """

    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.logger = logging.getLogger(__name__)

    def recalculate_city(self, city_id: int) -> List[CitySlotCutoff]:
        """
        Upsert one cutoff row per active slot for ``city_id``.
        The first failure rolls the session back and propagates.
        """
        try:
            slots = self.db.query(DeliverySlot).filter(DeliverySlot.is_active.is_(True)).all()
            vendors = (
                self.db.query(Vendor)
                .options(selectinload(Vendor.slot_settings))
                .filter(Vendor.cityID == city_id, Vendor.status == VendorStatus.APPROVED.value)
                .all()
            )
            existing = {
                row.slotID: row
                for row in self.db.query(CitySlotCutoff).filter(CitySlotCutoff.cityID == city_id)
            }

            now = datetime.now(timezone.utc)
            rows: List[CitySlotCutoff] = []
            for slot in slots:
                vendor_count = sum(1 for vendor in vendors if vendor.has_slot_enabled(slot.slotID))
                row = existing.get(slot.slotID)
                if row is None:
                    row = CitySlotCutoff(cityID=city_id, slotID=slot.slotID)
                    self.db.add(row)
                row.slot_name = slot.name
                row.slot_slug = slot.slug
                row.slot_start = slot.start_time
                row.slot_end = slot.end_time
                row.cutoff_hours = get_cutoff_hours(slot.slug)
                row.base_charge = slot.base_charge
                row.min_vendors = vendor_count
                row.is_available = vendor_count > 0
                row.updated_at = now
                rows.append(row)

            self.db.commit()
        except Exception:
            self.db.rollback()
            increment_counter("slot_recalculation_failures_total")
            self.logger.exception("Slot cutoff recalculation failed for city %s", city_id)
            raise

        available = sum(1 for row in rows if row.is_available)
        set_gauge("city_available_slots", available, labels={"city_id": city_id})
        increment_counter("slot_recalculations_total")
        self.logger.info(
            "Recalculated %d slot cutoffs for city %s (%d available)",
            len(rows),
            city_id,
            available,
        )
        return rows

    def recalculate_all_cities(self) -> int:
        """Recalculate every active city; returns how many were processed."""
        city_ids = [
            city_id
            for (city_id,) in self.db.query(City.cityID).filter(City.is_active.is_(True)).order_by(City.cityID)
        ]
        for city_id in city_ids:
            self.recalculate_city(city_id)
        record_event("slot_cutoffs_recalculated", {"cities": len(city_ids)})
        return len(city_ids)

    def list_city_slots(self, city_id: int) -> Dict[str, object]:
        """Available slots for a city ordered by window start."""
        cutoffs = (
            self.db.query(CitySlotCutoff)
            .filter(CitySlotCutoff.cityID == city_id, CitySlotCutoff.is_available.is_(True))
            .order_by(CitySlotCutoff.slot_start.asc())
            .all()
        )
        updated_at: Optional[datetime] = cutoffs[0].updated_at if cutoffs else None
        return {
            "cityId": city_id,
            "slots": [row.to_slot_dict() for row in cutoffs],
            "updatedAt": updated_at.isoformat() if updated_at else None,
        }

    def get_cutoff(self, city_id: int, slot_slug: str) -> Optional[CitySlotCutoff]:
        return (
            self.db.query(CitySlotCutoff)
            .filter(CitySlotCutoff.cityID == city_id, CitySlotCutoff.slot_slug == slot_slug)
            .first()
        )

    def available_slot_list(self, city_id: int) -> List[Dict[str, object]]:
        """
        Slot list for serviceability answers. Falls back to every active slot
        when the city has no available cutoff rows yet.
        """
        cutoffs = (
            self.db.query(CitySlotCutoff)
            .filter(CitySlotCutoff.cityID == city_id, CitySlotCutoff.is_available.is_(True))
            .order_by(CitySlotCutoff.slot_start.asc())
            .all()
        )
        if cutoffs:
            return [
                {
                    "id": row.slotID,
                    "name": row.slot_name,
                    "slug": row.slot_slug,
                    "startTime": row.slot_start,
                    "endTime": row.slot_end,
                    "charge": float(row.base_charge or 0),
                }
                for row in cutoffs
            ]
        slots = (
            self.db.query(DeliverySlot)
            .filter(DeliverySlot.is_active.is_(True))
            .order_by(DeliverySlot.start_time.asc())
            .all()
        )
        return [
            {
                "id": slot.slotID,
                "name": slot.name,
                "slug": slot.slug,
                "startTime": slot.start_time,
                "endTime": slot.end_time,
                "charge": float(slot.base_charge or 0),
            }
            for slot in slots
        ]
