# tests/conftest.py
"""
Pytest configuration and shared fixtures.

The database URL is pinned to a throwaway SQLite file before anything from
``giftscart`` is imported, because the engine is built at import time.
"""
import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

_DB_DIR = tempfile.mkdtemp(prefix="giftscart-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ.setdefault("STRUCTURED_LOGS_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.pop("MAPPLS_CLIENT_ID", None)
os.environ.pop("MAPPLS_CLIENT_SECRET", None)

from giftscart.database import Base, SessionLocal, engine  # noqa: E402
from giftscart.main import app  # noqa: E402
from giftscart.models import (  # noqa: E402
    City,
    CityDeliveryConfig,
    CitySlotCutoff,
    DeliverySlot,
    Product,
    User,
    Vendor,
    VendorSlot,
    VendorStatus,
)
from giftscart.observability.metrics import reset_metrics  # noqa: E402

IST = timezone(timedelta(hours=5, minutes=30))


def ist(year, month, day, hour=0, minute=0):
    """Aware datetime on the IST wall clock."""
    return datetime(year, month, day, hour, minute, tzinfo=IST)


@pytest.fixture(autouse=True)
def fresh_schema():
    """Every test starts from empty tables and empty metrics."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    reset_metrics()
    yield


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client():
    app.config["TESTING"] = True
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture
def make_user(db_session):
    def _make(email="customer@example.com", role="CUSTOMER", password="password123"):
        user = User(email=email, name=email.split("@")[0], role=role)
        user.set_password(password)
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def login(client, make_user):
    """Create a user with ``role`` and put them in the client's session."""

    def _login(role="CUSTOMER", email=None):
        user = make_user(email=email or f"{role.lower()}@example.com", role=role)
        with client.session_transaction() as sess:
            sess["user_id"] = user.userID
            sess["role"] = user.role
        return user

    return _login


@pytest.fixture
def city(db_session):
    city = City(
        name="Hyderabad",
        slug="hyderabad",
        state="Telangana",
        base_delivery_charge=49,
        free_delivery_above=999,
    )
    db_session.add(city)
    db_session.commit()
    return city


@pytest.fixture
def slots(db_session):
    """The platform's standard slot catalogue keyed by slug."""
    rows = [
        DeliverySlot(name="Standard Delivery", slug="standard", start_time="09:00", end_time="21:00",
                     base_charge=0, slot_group="standard"),
        DeliverySlot(name="Fixed Time Slot", slug="fixed-slot", start_time="09:00", end_time="21:00",
                     base_charge=50, slot_group="fixed"),
        DeliverySlot(name="Early Morning", slug="early-morning", start_time="07:00", end_time="09:00",
                     base_charge=149, slot_group="early-morning"),
        DeliverySlot(name="Express Delivery", slug="express", start_time="10:00", end_time="20:00",
                     base_charge=200, slot_group="express"),
        DeliverySlot(name="Midnight Delivery", slug="midnight", start_time="23:00", end_time="23:59",
                     base_charge=199, slot_group="midnight"),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return {slot.slug: slot for slot in rows}


@pytest.fixture
def make_vendor(db_session):
    def _make(city, enabled_slots=(), status=VendorStatus.APPROVED.value, lat=17.385, lng=78.4867,
              radius_km=8, is_online=True, name="Rose Petals"):
        vendor = Vendor(
            business_name=name,
            cityID=city.cityID,
            status=status,
            is_online=is_online,
            lat=lat,
            lng=lng,
            delivery_radius_km=radius_km,
        )
        db_session.add(vendor)
        db_session.flush()
        for slot in enabled_slots:
            db_session.add(VendorSlot(vendorID=vendor.vendorID, slotID=slot.slotID, is_enabled=True))
        db_session.commit()
        return vendor

    return _make


@pytest.fixture
def make_product(db_session):
    def _make(name="Red Roses Bouquet", express=True, category="flowers"):
        product = Product(
            name=name,
            slug=name.lower().replace(" ", "-"),
            category_slug=category,
            price=799,
            is_express_eligible=express,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture
def express_cutoff(db_session, city, slots):
    """An available express row as the recalculation job would leave it."""
    row = CitySlotCutoff(
        cityID=city.cityID,
        slotID=slots["express"].slotID,
        slot_name="Express Delivery",
        slot_slug="express",
        slot_start="10:00",
        slot_end="20:00",
        cutoff_hours=3,
        base_charge=200,
        min_vendors=1,
        is_available=True,
    )
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture
def enable_city_slots(db_session):
    def _enable(city, slot_rows, charge_overrides=None):
        charge_overrides = charge_overrides or {}
        for slot in slot_rows:
            db_session.add(
                CityDeliveryConfig(
                    cityID=city.cityID,
                    slotID=slot.slotID,
                    is_available=True,
                    charge_override=charge_overrides.get(slot.slug),
                )
            )
        db_session.commit()

    return _enable
