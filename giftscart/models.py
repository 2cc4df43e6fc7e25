# giftscart/models.py
from enum import Enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from werkzeug.security import check_password_hash, generate_password_hash

# Every model hangs off the shared Base so create_all sees one metadata.
from giftscart.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VendorStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    SUSPENDED = "SUSPENDED"
    REJECTED = "REJECTED"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class HolidayMode(str, Enum):
    FULL_BLOCK = "FULL_BLOCK"
    STANDARD_ONLY = "STANDARD_ONLY"
    CUSTOM = "CUSTOM"


class User(Base):
    __tablename__ = 'User'
    userID = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255))
    phone = Column(String(20))
    role = Column(String(50), nullable=False, default='CUSTOMER')
    _passwordHash = Column('passwordHash', String(255))
    created_at = Column(DateTime, default=_utcnow)
    orders = relationship("Order", back_populates="user")

    def set_password(self, raw_password: str) -> None:
        self._passwordHash = generate_password_hash(raw_password)

    def check_password(self, raw_password: str) -> bool:
        if not self._passwordHash:
            return False
        return check_password_hash(self._passwordHash, raw_password)

    def to_session_dict(self) -> dict:
        return {
            "id": self.userID,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "phone": self.phone,
        }


class City(Base):
    __tablename__ = 'City'
    cityID = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    slug = Column(String(120), unique=True, nullable=False)
    state = Column(String(120))
    is_active = Column(Boolean, nullable=False, default=True)
    base_delivery_charge = Column(Numeric(10, 2), nullable=False, default=0)
    free_delivery_above = Column(Numeric(10, 2), nullable=False, default=0)
    vendors = relationship("Vendor", back_populates="city")

    def to_dict(self) -> dict:
        return {
            "id": self.cityID,
            "name": self.name,
            "slug": self.slug,
            "state": self.state,
            "isActive": bool(self.is_active),
            "baseDeliveryCharge": float(self.base_delivery_charge or 0),
            "freeDeliveryAbove": float(self.free_delivery_above or 0),
        }


class Vendor(Base):
    __tablename__ = 'Vendor'
    vendorID = Column(Integer, primary_key=True, autoincrement=True)
    business_name = Column(String(255), nullable=False)
    cityID = Column(Integer, ForeignKey('City.cityID'), nullable=False)
    status = Column(String(20), nullable=False, default=VendorStatus.PENDING.value)
    is_online = Column(Boolean, nullable=False, default=True)
    lat = Column(Float)
    lng = Column(Float)
    delivery_radius_km = Column(Numeric(6, 2), nullable=False, default=5)
    city = relationship("City", back_populates="vendors")
    slot_settings = relationship("VendorSlot", back_populates="vendor")
    pincodes = relationship("VendorPincode", back_populates="vendor")

    @property
    def is_approved(self) -> bool:
        return self.status == VendorStatus.APPROVED.value

    def has_slot_enabled(self, slot_id: int) -> bool:
        return any(vs.slotID == slot_id and vs.is_enabled for vs in self.slot_settings)


class DeliverySlot(Base):
    __tablename__ = 'DeliverySlot'
    slotID = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    slug = Column(String(120), unique=True, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    base_charge = Column(Numeric(10, 2), nullable=False, default=0)
    slot_group = Column(String(30))
    is_active = Column(Boolean, nullable=False, default=True)
    city_configs = relationship("CityDeliveryConfig", back_populates="slot")

    @property
    def group(self) -> str:
        """Slot family used by the availability rules; falls back to the slug."""
        if self.slot_group:
            return self.slot_group
        if self.slug == 'fixed-slot':
            return 'fixed'
        return self.slug

    def to_dict(self) -> dict:
        return {
            "id": self.slotID,
            "name": self.name,
            "slug": self.slug,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "baseCharge": float(self.base_charge or 0),
            "slotGroup": self.group,
            "isActive": bool(self.is_active),
        }


class VendorSlot(Base):
    __tablename__ = 'VendorSlot'
    __table_args__ = (UniqueConstraint('vendorID', 'slotID', name='uq_vendor_slot'),)
    vendorSlotID = Column(Integer, primary_key=True, autoincrement=True)
    vendorID = Column(Integer, ForeignKey('Vendor.vendorID'), nullable=False)
    slotID = Column(Integer, ForeignKey('DeliverySlot.slotID'), nullable=False)
    is_enabled = Column(Boolean, nullable=False, default=True)
    vendor = relationship("Vendor", back_populates="slot_settings")
    slot = relationship("DeliverySlot")


class VendorPincode(Base):
    __tablename__ = 'VendorPincode'
    __table_args__ = (UniqueConstraint('vendorID', 'pincode', name='uq_vendor_pincode'),)
    vendorPincodeID = Column(Integer, primary_key=True, autoincrement=True)
    vendorID = Column(Integer, ForeignKey('Vendor.vendorID'), nullable=False)
    pincode = Column(String(6), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    vendor = relationship("Vendor", back_populates="pincodes")


class CityDeliveryConfig(Base):
    __tablename__ = 'CityDeliveryConfig'
    __table_args__ = (UniqueConstraint('cityID', 'slotID', name='uq_city_delivery_config'),)
    configID = Column(Integer, primary_key=True, autoincrement=True)
    cityID = Column(Integer, ForeignKey('City.cityID'), nullable=False)
    slotID = Column(Integer, ForeignKey('DeliverySlot.slotID'), nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    charge_override = Column(Numeric(10, 2))
    slot = relationship("DeliverySlot", back_populates="city_configs")
    city = relationship("City")

    def effective_charge(self) -> float:
        if self.charge_override is not None:
            return float(self.charge_override)
        return float(self.slot.base_charge or 0)


class CitySlotCutoff(Base):
    """Per-city slot availability snapshot, rebuilt by the recalculation job."""

    __tablename__ = 'CitySlotCutoff'
    __table_args__ = (UniqueConstraint('cityID', 'slotID', name='uq_city_slot_cutoff'),)
    cutoffID = Column(Integer, primary_key=True, autoincrement=True)
    cityID = Column(Integer, ForeignKey('City.cityID'), nullable=False, index=True)
    slotID = Column(Integer, ForeignKey('DeliverySlot.slotID'), nullable=False)
    slot_name = Column(String(120), nullable=False)
    slot_slug = Column(String(120), nullable=False)
    slot_start = Column(String(5), nullable=False)
    slot_end = Column(String(5), nullable=False)
    cutoff_hours = Column(Integer, nullable=False, default=4)
    base_charge = Column(Numeric(10, 2), nullable=False, default=0)
    min_vendors = Column(Integer, nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    def to_slot_dict(self) -> dict:
        return {
            "slotId": self.slotID,
            "name": self.slot_name,
            "slug": self.slot_slug,
            "startTime": self.slot_start,
            "endTime": self.slot_end,
            "cutoffHours": self.cutoff_hours,
            "baseCharge": float(self.base_charge or 0),
        }


class DeliverySurcharge(Base):
    __tablename__ = 'DeliverySurcharge'
    surchargeID = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    applies_to = Column(String(120), nullable=False, default='all')
    cityID = Column(Integer, ForeignKey('City.cityID'))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.surchargeID,
            "name": self.name,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "amount": float(self.amount or 0),
            "appliesTo": self.applies_to,
            "cityId": self.cityID,
            "isActive": bool(self.is_active),
        }


class DeliveryHoliday(Base):
    __tablename__ = 'DeliveryHoliday'
    __table_args__ = (UniqueConstraint('date', 'cityID', name='uq_delivery_holiday_date_city'),)
    holidayID = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, index=True)
    cityID = Column(Integer, ForeignKey('City.cityID'))
    reason = Column(String(255), nullable=False)
    customer_message = Column(Text)
    mode = Column(String(20), nullable=False, default=HolidayMode.FULL_BLOCK.value)
    # [{"slug": "midnight", "blocked": true, "priceOverride": null}, ...]
    slot_overrides = Column(JSON)
    city = relationship("City")

    def to_dict(self) -> dict:
        return {
            "id": self.holidayID,
            "date": self.date.isoformat() if self.date else None,
            "cityId": self.cityID,
            "cityName": self.city.name if self.city else None,
            "reason": self.reason,
            "customerMessage": self.customer_message,
            "mode": self.mode,
            "slotOverrides": self.slot_overrides or [],
        }


class ServiceArea(Base):
    __tablename__ = 'ServiceArea'
    areaID = Column(Integer, primary_key=True, autoincrement=True)
    pincode = Column(String(6), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    cityID = Column(Integer, ForeignKey('City.cityID'), nullable=False)
    city_name = Column(String(120))
    state = Column(String(120))
    lat = Column(Float)
    lng = Column(Float)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=_utcnow)
    city = relationship("City")


class Product(Base):
    __tablename__ = 'Product'
    productID = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True)
    category_slug = Column(String(120))
    price = Column(Numeric(10, 2), nullable=False, default=0)
    is_express_eligible = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)


class VendorProduct(Base):
    __tablename__ = 'VendorProduct'
    __table_args__ = (UniqueConstraint('vendorID', 'productID', name='uq_vendor_product'),)
    vendorProductID = Column(Integer, primary_key=True, autoincrement=True)
    vendorID = Column(Integer, ForeignKey('Vendor.vendorID'), nullable=False)
    productID = Column(Integer, ForeignKey('Product.productID'), nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    preparation_minutes = Column(Integer, nullable=False, default=120)


class Coupon(Base):
    __tablename__ = 'Coupon'
    couponID = Column(Integer, primary_key=True, autoincrement=True)
    _code = Column('code', String(50), unique=True, nullable=False)
    description = Column(String(255))
    discount_type = Column(String(20), nullable=False, default=DiscountType.PERCENTAGE.value)
    discount_value = Column(Numeric(10, 2), nullable=False)
    max_discount = Column(Numeric(10, 2))
    min_order_amount = Column(Numeric(10, 2), nullable=False, default=0)
    usage_limit = Column(Integer)
    used_count = Column(Integer, nullable=False, default=0)
    per_user_limit = Column(Integer, nullable=False, default=1)
    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    @property
    def code(self):
        return self._code

    @code.setter
    def code(self, value):
        self._code = (value or "").strip().upper()


class Order(Base):
    __tablename__ = 'Order'
    orderID = Column(Integer, primary_key=True, autoincrement=True)
    userID = Column(Integer, ForeignKey('User.userID'), nullable=False)
    cityID = Column(Integer, ForeignKey('City.cityID'))
    coupon_code = Column(String(50), index=True)
    status = Column(String(30), nullable=False, default=OrderStatus.PENDING.value)
    total = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(DateTime, default=_utcnow)
    user = relationship("User", back_populates="orders")


class Partner(Base):
    __tablename__ = 'Partner'
    partnerID = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    ref_code = Column(String(60), unique=True, nullable=False)
    subdomain = Column(String(120), unique=True)
    custom_domain = Column(String(255), unique=True)
    logo_url = Column(String(500))
    primary_color = Column(String(20))
    show_powered_by = Column(Boolean, nullable=False, default=True)
    commission_percent = Column(Numeric(5, 2), nullable=False, default=0)
    default_cityID = Column(Integer, ForeignKey('City.cityID'))
    default_vendorID = Column(Integer, ForeignKey('Vendor.vendorID'))
    is_active = Column(Boolean, nullable=False, default=True)
    default_city = relationship("City")
    default_vendor = relationship("Vendor")
