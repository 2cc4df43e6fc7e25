"""
Delivery surcharges: date-ranged extra charges scoped to all orders, a slot,
or a product category, optionally limited to one city.

``applies_to`` grammar:
    all              always applies
    slot:<slug>      applies when the chosen delivery slot matches
    category:<slug>  applies when any cart category matches
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Tuple

import bleach
from sqlalchemy import or_
from sqlalchemy.orm import Session

from giftscart.models import DeliverySurcharge
from giftscart.observability import increment_counter
from giftscart.timeutils import parse_date

logger = logging.getLogger(__name__)

APPLIES_TO_PATTERN = re.compile(r"^(all|slot:[a-z0-9-]+|category:[a-z0-9-]+)$")
APPLIES_TO_MESSAGE = "appliesTo must be 'all', 'slot:<slug>' or 'category:<slug>'"


@dataclass(frozen=True)
class SurchargeLine:
    id: int
    name: str
    amount: float
    applies_to: str


def fetch_platform_surcharges(db: Session, delivery_date: date, city_id: Optional[int]) -> List[SurchargeLine]:
    """
    Active surcharges valid on ``delivery_date`` that are global or scoped to
    ``city_id``. A failed query is logged and treated as no surcharges.
    """
    try:
        query = db.query(DeliverySurcharge).filter(
            DeliverySurcharge.is_active.is_(True),
            DeliverySurcharge.start_date <= delivery_date,
            DeliverySurcharge.end_date >= delivery_date,
        )
        if city_id is None:
            query = query.filter(DeliverySurcharge.cityID.is_(None))
        else:
            query = query.filter(
                or_(DeliverySurcharge.cityID.is_(None), DeliverySurcharge.cityID == city_id)
            )
        rows = query.order_by(DeliverySurcharge.surchargeID).all()
    except Exception as exc:
        db.rollback()
        increment_counter("surcharge_fetch_failures_total")
        logger.error("Failed to fetch surcharges for %s: %s", delivery_date, exc)
        return []

    return [
        SurchargeLine(id=row.surchargeID, name=row.name, amount=float(row.amount), applies_to=row.applies_to)
        for row in rows
    ]


def surcharge_applies(applies_to: str, slot_slug: Optional[str], category_ids: Iterable[str]) -> bool:
    if applies_to == "all":
        return True
    if applies_to.startswith("slot:"):
        return slot_slug is not None and applies_to[len("slot:"):] == slot_slug
    if applies_to.startswith("category:"):
        return applies_to[len("category:"):] in set(category_ids)
    return False


def calculate_platform_surcharge(
    surcharges: Iterable[SurchargeLine],
    slot_slug: Optional[str],
    category_ids: Iterable[str],
) -> Dict[str, Any]:
    """Total and line items of the surcharges matching the slot or categories."""
    categories = list(category_ids)
    breakdown = [
        {"name": s.name, "amount": s.amount}
        for s in surcharges
        if surcharge_applies(s.applies_to, slot_slug, categories)
    ]
    return {"total": sum(item["amount"] for item in breakdown), "breakdown": breakdown}


class SurchargeService:
    """Admin maintenance of surcharge records."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def list_surcharges(self) -> List[DeliverySurcharge]:
        return self.db.query(DeliverySurcharge).order_by(DeliverySurcharge.start_date.asc()).all()

    def create_surcharge(self, payload: Dict[str, Any]) -> Tuple[bool, str, Optional[DeliverySurcharge]]:
        name = _clean_text(payload.get("name"))
        start = parse_date(payload.get("startDate"))
        end = parse_date(payload.get("endDate"))
        amount = _parse_amount(payload.get("amount"))
        if not name or start is None or end is None or amount is None:
            return False, "Name, dates, and amount are required", None
        if end < start:
            return False, "End date must be on or after start date", None

        applies_to = _parse_applies_to(payload.get("appliesTo") or "all")
        if applies_to is None:
            return False, APPLIES_TO_MESSAGE, None
        is_active = payload.get("isActive", True)
        if not isinstance(is_active, bool):
            return False, "isActive must be true or false", None

        surcharge = DeliverySurcharge(
            name=name,
            start_date=start,
            end_date=end,
            amount=amount,
            applies_to=applies_to,
            cityID=payload.get("cityId"),
            is_active=is_active,
        )
        try:
            self.db.add(surcharge)
            self.db.commit()
            self.db.refresh(surcharge)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating surcharge: {e}")
            return False, "Failed to create surcharge", None

        logger.info(f"Created surcharge {surcharge.surchargeID} ({surcharge.applies_to})")
        return True, "Surcharge created", surcharge

    def update_surcharge(
        self, surcharge_id: int, payload: Dict[str, Any]
    ) -> Tuple[bool, str, Optional[DeliverySurcharge]]:
        surcharge = self.db.query(DeliverySurcharge).filter_by(surchargeID=surcharge_id).first()
        if not surcharge:
            return False, "Surcharge not found", None

        if "name" in payload:
            name = _clean_text(payload.get("name"))
            if not name:
                return False, "Name cannot be empty", None
            surcharge.name = name
        for key, column in (("startDate", "start_date"), ("endDate", "end_date")):
            if key in payload:
                parsed = parse_date(payload.get(key))
                if parsed is None:
                    return False, f"Invalid {key}", None
                setattr(surcharge, column, parsed)
        if "amount" in payload:
            amount = _parse_amount(payload.get("amount"))
            if amount is None:
                return False, "Invalid amount", None
            surcharge.amount = amount
        if "appliesTo" in payload:
            applies_to = _parse_applies_to(payload.get("appliesTo"))
            if applies_to is None:
                return False, APPLIES_TO_MESSAGE, None
            surcharge.applies_to = applies_to
        if "cityId" in payload:
            surcharge.cityID = payload.get("cityId")
        if "isActive" in payload:
            if not isinstance(payload.get("isActive"), bool):
                return False, "isActive must be true or false", None
            surcharge.is_active = payload.get("isActive")

        if surcharge.end_date < surcharge.start_date:
            self.db.rollback()
            return False, "End date must be on or after start date", None

        self.db.commit()
        return True, "Surcharge updated", surcharge

    def delete_surcharge(self, surcharge_id: int) -> Tuple[bool, str]:
        surcharge = self.db.query(DeliverySurcharge).filter_by(surchargeID=surcharge_id).first()
        if not surcharge:
            return False, "Surcharge not found"
        self.db.delete(surcharge)
        self.db.commit()
        logger.info(f"Deleted surcharge {surcharge_id}")
        return True, "Surcharge deleted"


def _clean_text(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return bleach.clean(value, tags=[], strip=True).strip()


def _parse_amount(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    if amount < 0:
        return None
    return amount


def _parse_applies_to(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value if APPLIES_TO_PATTERN.match(value) else None
