from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from giftscart.errors import ValidationError
from giftscart.models import Coupon, DiscountType, Order, OrderStatus
from giftscart.observability import increment_counter
from giftscart.timeutils import to_utc

# Orders in these states no longer count against a user's coupon allowance.
RELEASED_STATUSES = (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value)


def _rupees(value: Decimal) -> str:
    """Render an amount the way customers see it: no trailing ``.00``."""
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, "f")


def compute_discount(coupon: Coupon, order_total: Decimal) -> int:
    """Discount in whole rupees, capped by max_discount and the order total."""
    value = Decimal(str(coupon.discount_value))
    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        discount = order_total * value / Decimal(100)
        if coupon.max_discount:
            discount = min(discount, Decimal(str(coupon.max_discount)))
    else:
        discount = value
    discount = min(discount, order_total)
    return int(discount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CouponService:
    def __init__(self, db_session: Session):
        self.db = db_session
        self.logger = logging.getLogger(__name__)

    def user_usage_count(self, user_id: int, code: str) -> int:
        return (
            self.db.query(func.count(Order.orderID))
            .filter(
                Order.userID == user_id,
                Order.coupon_code == code,
                Order.status.notin_(RELEASED_STATUSES),
            )
            .scalar()
            or 0
        )

    def validate(
        self,
        code: Any,
        order_total: Any,
        user_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Check a coupon against an order total without redeeming it.
        Malformed input raises ValidationError; business rejections come back
        as ``{"valid": False, "message": ...}``.
        """
        if not isinstance(code, str) or not 1 <= len(code.strip()) <= 50:
            raise ValidationError("Coupon code is required")
        if isinstance(order_total, bool) or not isinstance(order_total, (int, float)) or order_total < 0:
            raise ValidationError("orderTotal must be a non-negative number")

        total = Decimal(str(order_total))
        coupon = self.db.query(Coupon).filter(Coupon._code == code.strip().upper()).first()

        message = self._rejection(coupon, total, user_id, now)
        if message:
            increment_counter("coupon_validations_total", labels={"valid": False})
            self.logger.info("Coupon %s rejected: %s", code.strip().upper(), message)
            return {"valid": False, "message": message}

        discount = compute_discount(coupon, total)
        increment_counter("coupon_validations_total", labels={"valid": True})
        return {
            "valid": True,
            "discount": discount,
            "discountType": coupon.discount_type,
            "discountValue": float(coupon.discount_value),
            "maxDiscount": float(coupon.max_discount) if coupon.max_discount else None,
            "message": f"Coupon applied! You save ₹{discount}",
        }

    def _rejection(
        self,
        coupon: Optional[Coupon],
        total: Decimal,
        user_id: Optional[int],
        now: Optional[datetime],
    ) -> Optional[str]:
        if coupon is None or not coupon.is_active:
            return "Invalid coupon code"

        current = to_utc(now) if now is not None else datetime.now(timezone.utc)
        if current < to_utc(coupon.valid_from) or current > to_utc(coupon.valid_until):
            return "This coupon has expired"

        if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
            return "This coupon has reached its usage limit"

        min_order = Decimal(str(coupon.min_order_amount or 0))
        if total < min_order:
            return f"Minimum order of ₹{_rupees(min_order)} required for this coupon"

        if user_id is not None and coupon.per_user_limit > 0:
            if self.user_usage_count(user_id, coupon.code) >= coupon.per_user_limit:
                return "You have already used this coupon"

        return None
