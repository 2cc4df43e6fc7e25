from __future__ import annotations

from flask import Blueprint

from giftscart.blueprints import json_body, ok
from giftscart.database import get_db
from giftscart.errors import ValidationError
from giftscart.security import current_user
from giftscart.services.coupon_service import CouponService

coupons_bp = Blueprint("coupons", __name__)


@coupons_bp.route("/api/coupons/validate", methods=["POST"])
def validate_coupon():
    payload = json_body()

    user_id = payload.get("userId")
    if user_id is not None:
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            raise ValidationError("userId must be an integer")
    else:
        user = current_user()
        user_id = user.userID if user is not None else None

    data = CouponService(get_db()).validate(payload.get("code"), payload.get("orderTotal"), user_id=user_id)
    return ok(data)
