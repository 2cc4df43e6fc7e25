from __future__ import annotations

from flask import Blueprint, request

from giftscart.blueprints import id_list, int_arg, ok
from giftscart.database import get_db
from giftscart.errors import ValidationError
from giftscart.services.delivery_slots_service import DeliverySlotsService
from giftscart.services.express_service import ExpressEligibilityService
from giftscart.services.slot_cutoff_service import SlotCutoffService

delivery_bp = Blueprint("delivery", __name__)


def _get_slot_cutoff_service() -> SlotCutoffService:
    return SlotCutoffService(get_db())


@delivery_bp.route("/api/delivery/city-slots", methods=["GET"])
def city_slots():
    city_id = int_arg("cityId")
    return ok(_get_slot_cutoff_service().list_city_slots(city_id))


@delivery_bp.route("/api/delivery/slots", methods=["GET"])
def slots_for_date():
    product_ids = [pid for pid in id_list(request.args.get("productIds")) if pid is not None]
    data = DeliverySlotsService(get_db()).availability(
        request.args.get("cityId"),
        request.args.get("date"),
        product_ids=product_ids,
    )
    return ok(data)


@delivery_bp.route("/api/checkout/express-eligibility", methods=["GET"])
def express_eligibility():
    city_id = int_arg("cityId")
    product_ids = id_list(request.args.get("productIds"))
    if not product_ids:
        raise ValidationError("At least one productId is required")
    result = ExpressEligibilityService(get_db()).check(city_id, product_ids)
    return ok(result.to_dict())
