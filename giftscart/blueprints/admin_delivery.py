from __future__ import annotations

import logging
from typing import Any, Optional

from flask import Blueprint, jsonify, request

from giftscart.blueprints import int_arg, json_body, ok
from giftscart.database import get_db
from giftscart.errors import ConflictError, NotFoundError, ValidationError
from giftscart.security import require_admin, require_roles
from giftscart.services.delivery_admin_service import DeliveryAdminService
from giftscart.services.slot_cutoff_service import SlotCutoffService
from giftscart.services.surcharge_service import SurchargeService
from giftscart.timeutils import today_ist

logger = logging.getLogger(__name__)

admin_delivery_bp = Blueprint("admin_delivery", __name__, url_prefix="/api/admin")


def _get_delivery_admin_service() -> DeliveryAdminService:
    return DeliveryAdminService(get_db())


def _get_surcharge_service() -> SurchargeService:
    return SurchargeService(get_db())


def _admin_result(success: bool, message: str, obj: Optional[Any] = None, status: int = 200):
    """Translate a ``(success, message, obj)`` service answer into the JSON envelope."""
    if not success:
        if message.endswith("not found"):
            raise NotFoundError(message)
        if "already exists" in message:
            raise ConflictError(message)
        raise ValidationError(message)
    data = obj.to_dict() if obj is not None and hasattr(obj, "to_dict") else None
    return ok(data, status=status, message=message)


# ---------------------------------------------------------------------------
# Slot cutoff recalculation
# ---------------------------------------------------------------------------

@admin_delivery_bp.route("/recalculate-slots", methods=["POST"])
@require_roles("ADMIN", "SUPER_ADMIN")
def recalculate_slots():
    payload = request.get_json(silent=True) or {}
    service = SlotCutoffService(get_db())
    city_id = payload.get("cityId") if isinstance(payload, dict) else None
    if city_id is not None:
        if not isinstance(city_id, int) or isinstance(city_id, bool):
            raise ValidationError("cityId must be an integer")
        rows = service.recalculate_city(city_id)
        return jsonify({
            "success": True,
            "message": f"Recalculated {len(rows)} slots for city {city_id}",
        })
    count = service.recalculate_all_cities()
    return jsonify({"success": True, "message": f"Recalculated slots for {count} cities"})


# ---------------------------------------------------------------------------
# Surcharges
# ---------------------------------------------------------------------------

@admin_delivery_bp.route("/delivery/surcharges", methods=["GET"])
@require_admin
def list_surcharges():
    return ok([s.to_dict() for s in _get_surcharge_service().list_surcharges()])


@admin_delivery_bp.route("/delivery/surcharges", methods=["POST"])
@require_admin
def create_surcharge():
    success, message, surcharge = _get_surcharge_service().create_surcharge(json_body())
    return _admin_result(success, message, surcharge, status=201)


@admin_delivery_bp.route("/delivery/surcharges/<int:surcharge_id>", methods=["PATCH"])
@require_admin
def update_surcharge(surcharge_id: int):
    success, message, surcharge = _get_surcharge_service().update_surcharge(surcharge_id, json_body())
    return _admin_result(success, message, surcharge)


@admin_delivery_bp.route("/delivery/surcharges/<int:surcharge_id>", methods=["DELETE"])
@require_admin
def delete_surcharge(surcharge_id: int):
    success, message = _get_surcharge_service().delete_surcharge(surcharge_id)
    return _admin_result(success, message)


# ---------------------------------------------------------------------------
# Slots
# ---------------------------------------------------------------------------

@admin_delivery_bp.route("/delivery/slots", methods=["GET"])
@require_admin
def list_slots():
    return ok([slot.to_dict() for slot in _get_delivery_admin_service().list_slots()])


@admin_delivery_bp.route("/delivery/slots/<int:slot_id>", methods=["PATCH"])
@require_admin
def update_slot(slot_id: int):
    success, message, slot = _get_delivery_admin_service().update_slot(slot_id, json_body())
    return _admin_result(success, message, slot)


# ---------------------------------------------------------------------------
# Holidays
# ---------------------------------------------------------------------------

@admin_delivery_bp.route("/delivery/holidays", methods=["GET"])
@require_admin
def list_holidays():
    city_id = int_arg("cityId", required=False)
    upcoming = request.args.get("upcoming") == "true"
    holidays = _get_delivery_admin_service().list_holidays(
        city_id=city_id,
        upcoming_from=today_ist() if upcoming else None,
    )
    return ok([h.to_dict() for h in holidays])


@admin_delivery_bp.route("/delivery/holidays", methods=["POST"])
@require_admin
def create_holiday():
    success, message, holiday = _get_delivery_admin_service().create_holiday(json_body())
    return _admin_result(success, message, holiday, status=201)


@admin_delivery_bp.route("/delivery/holidays/<int:holiday_id>", methods=["DELETE"])
@require_admin
def delete_holiday(holiday_id: int):
    success, message = _get_delivery_admin_service().delete_holiday(holiday_id)
    return _admin_result(success, message)


# ---------------------------------------------------------------------------
# City delivery configuration
# ---------------------------------------------------------------------------

@admin_delivery_bp.route("/delivery/city-config/<int:city_id>", methods=["PATCH"])
@require_admin
def update_city_config(city_id: int):
    success, message = _get_delivery_admin_service().update_city_config(city_id, json_body())
    return _admin_result(success, message)
