from .slot_cutoff_service import SlotCutoffService
from .surcharge_service import SurchargeService, calculate_platform_surcharge, fetch_platform_surcharges
from .express_service import ExpressEligibilityService
from .pincode_service import PincodeService
from .serviceability_service import ServiceabilityService
from .coupon_service import CouponService
from .delivery_slots_service import DeliverySlotsService
from .delivery_admin_service import DeliveryAdminService
from .partner_service import PartnerService

__all__ = [
    "SlotCutoffService",
    "SurchargeService",
    "calculate_platform_surcharge",
    "fetch_platform_surcharges",
    "ExpressEligibilityService",
    "PincodeService",
    "ServiceabilityService",
    "CouponService",
    "DeliverySlotsService",
    "DeliveryAdminService",
    "PartnerService",
]
